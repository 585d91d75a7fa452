"""Domain services for booking workflows.

All functions take the active ``TenantUnitOfWork`` and only see rows of
its property.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional
from zoneinfo import ZoneInfo

from django.conf import settings  # type: ignore
from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import RateNotFound, RoomNotAvailable, RoomNotFound
from shared.domain.value_objects import DateRange
from shared.infrastructure.db import lock_queryset_if_possible

from .domain.entities import BookingStatus
from .domain.inventory import RoomInventory
from .domain.pricing import StayPrice, price_stay_for_room

logger = logging.getLogger(__name__)


def get_room(uow, room_id, *, lock: bool = False):
    """Load a room of the active property, optionally holding its row lock."""

    queryset = uow.rooms.filter(pk=room_id)
    if lock:
        queryset = lock_queryset_if_possible(queryset)
    room = queryset.first()
    if room is None:
        raise RoomNotFound(room_id)
    return room


def load_room_inventory(uow, room, dates: DateRange, *, exclude_booking_id=None) -> RoomInventory:
    """Collect blocking bookings and room blocks that touch ``dates``."""

    overlapping = Q(check_in__lt=dates.end_date) & Q(check_out__gt=dates.start_date)

    bookings_qs = (
        uow.bookings.filter(room_id=room.pk)
        .exclude(status=BookingStatus.CANCELLED.value)
        .filter(overlapping)
    )
    if exclude_booking_id is not None:
        bookings_qs = bookings_qs.exclude(pk=exclude_booking_id)

    blocks_qs = uow.room_blocks.filter(room_id=room.pk).filter(
        Q(date_from__lt=dates.end_date) & Q(date_to__gt=dates.start_date)
    )

    inventory = RoomInventory(room_id=room.pk)
    for booking_id, check_in, check_out in bookings_qs.values_list("id", "check_in", "check_out"):
        inventory.add_booking(booking_id, check_in, check_out)
    for block_id, date_from, date_to in blocks_qs.values_list("id", "date_from", "date_to"):
        inventory.add_block(block_id, date_from, date_to)
    return inventory


def find_blocked_dates(uow, room, dates: DateRange, *, exclude_booking_id=None) -> List[date]:
    """Nights of ``dates`` already taken; every night when the room is not sellable."""

    if not room.is_sellable():
        return list(dates.nights())
    inventory = load_room_inventory(uow, room, dates, exclude_booking_id=exclude_booking_id)
    return inventory.blocked_dates(dates)


def is_room_available(uow, room_id, check_in: date, check_out: date, *, exclude_booking_id=None) -> bool:
    """
    True when no blocking booking or room block overlaps the stay.

    Read-only: callers that go on to write must use
    ``ensure_room_is_available`` with the room row locked.
    """

    dates = DateRange(check_in, check_out)
    room = get_room(uow, room_id)
    return not find_blocked_dates(uow, room, dates, exclude_booking_id=exclude_booking_id)


def ensure_room_is_available(uow, room, dates: DateRange, *, exclude_booking_id=None) -> None:
    """Raise ``RoomNotAvailable`` listing the taken nights."""

    blocked = find_blocked_dates(uow, room, dates, exclude_booking_id=exclude_booking_id)
    if blocked:
        logger.info(
            f"Room {room.pk} unavailable for {dates}: {len(blocked)} night(s) taken"
        )
        raise RoomNotAvailable(room.pk, blocked)


def get_rate(uow, rate_id):
    rate = uow.rates.filter(pk=rate_id, is_active=True).first()
    if rate is None:
        raise RateNotFound(rate_id)
    return rate


def price_stay(uow, room_id, check_in: date, check_out: date, rate_id=None, *, room=None) -> StayPrice:
    """Price a stay for a room with the active rates of the property."""

    dates = DateRange(check_in, check_out)
    if room is None:
        room = get_room(uow, room_id)
    explicit_rule = get_rate(uow, rate_id).as_rule() if rate_id is not None else None
    rules = [rate.as_rule() for rate in uow.rates.filter(is_active=True)]
    return price_stay_for_room(room, dates.start_date, dates.end_date, rules, explicit_rule)


def property_today(property_obj) -> date:
    """Current calendar date in the property's timezone."""

    return timezone.localtime(timezone.now(), ZoneInfo(property_obj.timezone)).date()


def next_booking_number(uow, property_obj, today: Optional[date] = None) -> str:
    """
    Allocate ``BK-YYYY-NNNN``, sequential per property and year.

    The property row lock serialises concurrent allocations.
    """

    locked = lock_queryset_if_possible(uow.properties.filter(pk=property_obj.pk))
    locked.values_list("pk", flat=True).first()

    year = (today or property_today(property_obj)).year
    prefix = f"{settings.BOOKING_NUMBER_PREFIX}-{year}-"
    last_number = (
        uow.bookings.filter(booking_number__startswith=prefix)
        .order_by("-id")
        .values_list("booking_number", flat=True)
        .first()
    )
    sequence = int(last_number[len(prefix):]) + 1 if last_number else 1
    return f"{prefix}{sequence:04d}"


def record_history(booking, action: str, old_value=None, new_value=None):
    """Append an audit entry for ``booking`` in the current transaction."""

    from .models import BookingHistory

    return BookingHistory.objects.create(
        booking=booking,
        action=action,
        old_value=old_value,
        new_value=new_value,
    )
