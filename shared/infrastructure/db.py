"""Database helpers: row locking, driver error translation and retry."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Optional

from django.db import DatabaseError, IntegrityError, OperationalError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from shared.domain.exceptions import ConcurrencyConflict, InternalError, RoomNotAvailable

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
EXCLUSION_VIOLATION = "23P01"
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
LOCK_NOT_AVAILABLE = "55P03"

RETRYABLE_STATES = {SERIALIZATION_FAILURE, DEADLOCK_DETECTED, LOCK_NOT_AVAILABLE}

BOOKING_OVERLAP_CONSTRAINT = "bookings_no_overlap"


def lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection(queryset.db).in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _sqlstate(error: Exception) -> Optional[str]:
    cause = error.__cause__
    # psycopg2 exposes ``pgcode``, psycopg 3 exposes ``sqlstate``
    return getattr(cause, "pgcode", None) or getattr(cause, "sqlstate", None)


@contextmanager
def translate_database_errors():
    """
    Map driver failures to domain errors.

    The overlap exclusion constraint becomes ``RoomNotAvailable``,
    serialization failures and deadlocks become ``ConcurrencyConflict``
    and anything else becomes an opaque ``InternalError``.
    """
    try:
        yield
    except IntegrityError as error:
        state = _sqlstate(error)
        if state == EXCLUSION_VIOLATION or BOOKING_OVERLAP_CONSTRAINT in str(error):
            logger.info("Booking overlap rejected by exclusion constraint")
            raise RoomNotAvailable() from error
        logger.error(f"Integrity error: {error}", exc_info=True)
        raise InternalError() from error
    except OperationalError as error:
        state = _sqlstate(error)
        if state in RETRYABLE_STATES or "database is locked" in str(error):
            logger.warning(f"Concurrent update detected (sqlstate={state})")
            raise ConcurrencyConflict() from error
        logger.error(f"Database error: {error}", exc_info=True)
        raise InternalError() from error
    except DatabaseError as error:
        logger.error(f"Database error: {error}", exc_info=True)
        raise InternalError() from error


def run_with_retry(func: Callable[..., Any], *args: Any, attempts: int = 2, **kwargs: Any) -> Any:
    """Call ``func`` and retry it when it fails with ``ConcurrencyConflict``"""
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except ConcurrencyConflict:
            if attempt >= attempts:
                raise
            logger.warning(f"Retrying {getattr(func, '__name__', func)} after conflict (attempt {attempt})")
