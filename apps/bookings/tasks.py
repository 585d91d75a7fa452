"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from apps.properties.models import Property
from shared.domain.exceptions import BookingCoreError
from shared.infrastructure.tenancy import privileged, tenant_context

from .application.interface import transition_booking
from .domain.entities import BookingStatus
from .models import Booking
from .services import property_today

logger = logging.getLogger(__name__)

NO_SHOW_CANDIDATES = (BookingStatus.NEW.value, BookingStatus.CONFIRMED.value)


def find_no_show_candidates(property_obj) -> list[int]:
    """Ids of bookings whose stay ended without the guest ever checking in."""

    today = property_today(property_obj)
    with tenant_context(property_obj.pk):
        return list(
            Booking.objects.filter(
                status__in=NO_SHOW_CANDIDATES,
                check_out__lte=today,
            ).values_list("id", flat=True)
        )


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.mark_no_shows")
def mark_no_shows() -> dict[str, int]:
    """
    Move stale new/confirmed bookings to ``no_show``.

    Runs daily. Properties are listed on the privileged path; each
    booking is then transitioned through the regular tenant-scoped
    command, so history, events and guest aggregates stay consistent.
    A failure on one booking is logged and the sweep continues.

    Returns:
        dict: {"marked": ..., "failed": ...}
    """
    with privileged():
        properties = list(Property.unscoped.only("id", "timezone"))

    marked = failed = 0
    for property_obj in properties:
        for booking_id in find_no_show_candidates(property_obj):
            try:
                transition_booking(property_obj.pk, booking_id, BookingStatus.NO_SHOW.value)
                marked += 1
            except BookingCoreError as exc:
                failed += 1
                logger.warning(f"Could not mark booking {booking_id} as no-show: {exc.code}")

    if marked or failed:
        logger.info(f"No-show sweep: {marked} marked, {failed} failed")
    return {"marked": marked, "failed": failed}
