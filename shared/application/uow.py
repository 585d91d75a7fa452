"""
Unit of Work Pattern

A ``TenantUnitOfWork`` is the boundary of every booking core mutation:

* it opens a database transaction and activates the tenant scope for
  exactly one property (on PostgreSQL also for row-level security);
* it exposes querysets already filtered to that property;
* writes inside it tag the entities whose derived aggregates they
  affect, and those aggregates are recomputed before commit;
* domain events are published only after the transaction commits.

Usage:
    with TenantUnitOfWork(property_id) as uow:
        room = uow.rooms.get(pk=room_id)
        ...
        uow.add_event(BookingCreated(...))
    # aggregates recomputed, transaction committed, events published
"""

from contextvars import ContextVar
from typing import Callable, Dict, List, Optional
import logging

from django.db import DEFAULT_DB_ALIAS, transaction

from shared.domain.base import DomainEvent
from shared.infrastructure import tenancy

logger = logging.getLogger(__name__)

# kind -> recompute function, run in registration order before commit
_recompute_handlers: Dict[str, Callable[[int], object]] = {}

_active_uow: ContextVar[Optional['TenantUnitOfWork']] = ContextVar('active_unit_of_work', default=None)


def register_recompute_handler(kind: str, handler: Callable[[int], object]) -> None:
    _recompute_handlers[kind] = handler


def current_unit_of_work() -> Optional['TenantUnitOfWork']:
    return _active_uow.get()


def notify_affected(kind: str, entity_id: Optional[int]) -> None:
    """
    Tag an entity whose derived aggregates must be recomputed.

    Inside a unit of work the recompute is deferred to its commit; outside
    one (privileged maintenance writes) it runs immediately in its own
    transaction.
    """
    if entity_id is None:
        return
    uow = current_unit_of_work()
    if uow is not None:
        uow.mark_affected(kind, entity_id)
        return
    handler = _recompute_handlers.get(kind)
    if handler is None:
        logger.warning(f"No recompute handler registered for '{kind}'")
        return
    with transaction.atomic():
        handler(entity_id)


class TenantUnitOfWork:
    """Transaction + tenant scope + deferred aggregate recompute + events"""

    def __init__(self, property_id: int, using: str = DEFAULT_DB_ALIAS):
        self.property_id = property_id
        self.using = using
        self._events: List[DomainEvent] = []
        self._affected: Dict[str, Dict[int, None]] = {}
        self._transaction = None
        self._tenant_token = None
        self._uow_token = None

    def __enter__(self):
        # raises TenantMismatch when another property is already active
        self._tenant_token = tenancy.set_tenant_context(self.property_id)
        self.property_id = tenancy.get_current_property_id()
        self._transaction = transaction.atomic(using=self.using)
        try:
            self._transaction.__enter__()
            tenancy.apply_tenant_setting(self.property_id, self.using)
        except BaseException as error:
            if self._transaction is not None:
                self._transaction.__exit__(type(error), error, error.__traceback__)
            tenancy.clear_tenant_context(self._tenant_token)
            raise
        self._uow_token = _active_uow.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                try:
                    self.commit()
                except BaseException as error:
                    self.rollback()
                    self._transaction.__exit__(type(error), error, error.__traceback__)
                    raise
            else:
                self.rollback()
            self._transaction.__exit__(exc_type, exc_val, exc_tb)
        finally:
            _active_uow.reset(self._uow_token)
            tenancy.clear_tenant_context(self._tenant_token)

    # Scoped querysets

    @property
    def properties(self):
        from apps.properties.models import Property
        return Property.objects.using(self.using)

    @property
    def rooms(self):
        from apps.properties.models import Room
        return Room.objects.using(self.using)

    @property
    def room_blocks(self):
        from apps.properties.models import RoomBlock
        return RoomBlock.objects.using(self.using)

    @property
    def rates(self):
        from apps.properties.models import Rate
        return Rate.objects.using(self.using)

    @property
    def guests(self):
        from apps.guests.models import Guest
        return Guest.objects.using(self.using)

    @property
    def bookings(self):
        from apps.bookings.models import Booking
        return Booking.objects.using(self.using)

    @property
    def payments(self):
        from apps.finances.models import Payment
        return Payment.objects.using(self.using)

    # Aggregates and events

    def mark_affected(self, kind: str, entity_id: int):
        self._affected.setdefault(kind, {})[entity_id] = None

    def flush(self):
        """Recompute every tagged aggregate, in handler registration order"""
        while self._affected:
            pending, self._affected = self._affected, {}
            for kind, handler in _recompute_handlers.items():
                for entity_id in pending.pop(kind, {}):
                    handler(entity_id)
            for kind in pending:
                logger.warning(f"No recompute handler registered for '{kind}'")

    def add_event(self, event: DomainEvent):
        self._events.append(event)

    def commit(self):
        """
        Recompute aggregates and schedule event publishing.

        Events go out through ``transaction.on_commit`` so they are only
        sent once the database commit succeeded.
        """
        self.flush()
        logger.debug(f"Committing property {self.property_id} with {len(self._events)} events")

        events = self._events.copy()
        self._events.clear()

        if events:
            transaction.on_commit(lambda: self._publish_events(events), using=self.using)

    def rollback(self):
        if self._events:
            logger.warning(f"Rolling back transaction, discarding {len(self._events)} events")
        self._events.clear()
        self._affected.clear()

    def _publish_events(self, events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")
        message_bus.publish_events(events)
