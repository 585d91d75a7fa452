"""
Booking Command Handlers

These are the use cases of the booking core. Each handler runs inside
one ``TenantUnitOfWork``: everything it writes, the history rows and
the derived ledger aggregates commit together or not at all.

Commands:
- CheckAvailabilityCommand: Is a room free for a stay
- PriceStayCommand: Nightly price breakdown for a stay
- CreateBookingCommand: Create a new booking
- UpdateBookingCommand: Change dates, room, guest or pricing of a booking
- TransitionBookingCommand: Move a booking through its lifecycle
- RecordPaymentCommand: Append a payment or refund
- DeletePaymentCommand: Remove a ledger entry
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional
import logging

from django.conf import settings
from django.utils import timezone

from shared.application.uow import TenantUnitOfWork
from shared.domain.exceptions import (
    GuestNotFound,
    BookingNotFound,
    InvalidStateTransition,
    TenantMismatch,
    ValidationFailed,
)
from shared.domain.value_objects import DateRange, Money
from shared.infrastructure.db import lock_queryset_if_possible, translate_database_errors
from apps.bookings import services
from apps.bookings.domain.entities import BookingStatus, ensure_transition_allowed
from apps.bookings.domain.events import (
    BookingCancelled,
    BookingCreated,
    BookingStatusChanged,
    BookingUpdated,
)
from apps.bookings.models import Booking, BookingHistory

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class CheckAvailabilityCommand:
    property_id: int
    room_id: int
    check_in: date
    check_out: date
    exclude_booking_id: Optional[int] = None


@dataclass
class PriceStayCommand:
    property_id: int
    room_id: int
    check_in: date
    check_out: date
    rate_id: Optional[int] = None


@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    ``total_amount_override`` skips the rate calculator and fixes the
    total as given (e.g. a price agreed with a channel).
    """
    property_id: int
    room_id: int
    guest_id: int
    check_in: date
    check_out: date
    adults: int = 1
    children: int = 0
    source: str = Booking.Source.DIRECT
    total_amount_override: Optional[int] = None
    rate_id: Optional[int] = None
    notes: Optional[str] = None
    source_reference: Optional[str] = None


@dataclass
class UpdateBookingCommand:
    """Partial update; keys of ``patch`` are limited to UPDATABLE_FIELDS"""
    property_id: int
    booking_id: int
    patch: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransitionBookingCommand:
    property_id: int
    booking_id: int
    target_status: str
    reason: Optional[str] = None


@dataclass
class RecordPaymentCommand:
    property_id: int
    booking_id: int
    amount: int
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class DeletePaymentCommand:
    property_id: int
    payment_id: int


UPDATABLE_FIELDS = frozenset({
    'room_id', 'guest_id', 'check_in', 'check_out', 'adults', 'children',
    'rate_id', 'total_amount', 'notes', 'source', 'source_reference',
})

# Changing any of these re-runs availability and, without an explicit
# total_amount, the rate calculator.
STAY_FIELDS = frozenset({'room_id', 'check_in', 'check_out'})


def _validate_occupancy(room, adults, children):
    if adults is None or adults < 1:
        raise ValidationFailed("At least one adult is required", adults=adults)
    if children is None or children < 0:
        raise ValidationFailed("Children cannot be negative", children=children)
    if adults > room.capacity_adults or children > room.capacity_children:
        raise ValidationFailed(
            f"Room {room.name} holds {room.capacity_adults} adult(s) and {room.capacity_children} child(ren)",
            adults=adults,
            children=children,
        )


def _validate_total(total_amount):
    if isinstance(total_amount, bool) or not isinstance(total_amount, int) or total_amount < 0:
        raise ValidationFailed("total_amount must be a non-negative integer", total_amount=total_amount)


def _snapshot(booking: Booking, names) -> Dict[str, Any]:
    return {name: getattr(booking, name) for name in names}


def _get_booking(uow, booking_id) -> Booking:
    booking = lock_queryset_if_possible(uow.bookings.filter(pk=booking_id)).first()
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def _get_guest(uow, guest_id):
    guest = uow.guests.filter(pk=guest_id).first()
    if guest is None:
        raise GuestNotFound(guest_id)
    return guest


# ===== Command Handlers =====

class CheckAvailabilityHandler:
    def handle(self, command: CheckAvailabilityCommand) -> bool:
        with TenantUnitOfWork(command.property_id) as uow:
            return services.is_room_available(
                uow,
                command.room_id,
                command.check_in,
                command.check_out,
                exclude_booking_id=command.exclude_booking_id,
            )


class PriceStayHandler:
    def handle(self, command: PriceStayCommand):
        with TenantUnitOfWork(command.property_id) as uow:
            return services.price_stay(
                uow,
                command.room_id,
                command.check_in,
                command.check_out,
                command.rate_id,
            )


class CreateBookingHandler:
    """
    Handler for CreateBooking command

    Double booking prevention:
    1. Lock the room row (SELECT ... FOR UPDATE)
    2. Check blocking bookings and room blocks under that lock
    3. Insert the booking in the same transaction
    4. PostgreSQL EXCLUDE constraint as final safety net
    """

    def handle(self, command: CreateBookingCommand) -> Booking:
        logger.info(
            f"Creating booking for property {command.property_id}, room {command.room_id}, "
            f"guest {command.guest_id}, dates {command.check_in} - {command.check_out}"
        )
        dates = DateRange(command.check_in, command.check_out)

        with translate_database_errors(), TenantUnitOfWork(command.property_id) as uow:
            property_obj = uow.properties.filter(pk=command.property_id).first()
            if property_obj is None:
                raise TenantMismatch("Unknown property", requested_property_id=command.property_id)
            room = services.get_room(uow, command.room_id, lock=True)
            guest = _get_guest(uow, command.guest_id)
            _validate_occupancy(room, command.adults, command.children)
            if command.source not in Booking.Source.values:
                raise ValidationFailed(f"Unknown booking source '{command.source}'", source=command.source)

            services.ensure_room_is_available(uow, room, dates)

            rate = services.get_rate(uow, command.rate_id) if command.rate_id is not None else None
            if command.total_amount_override is not None:
                _validate_total(command.total_amount_override)
                total_amount = command.total_amount_override
            else:
                total_amount = services.price_stay(
                    uow, room.pk, dates.start_date, dates.end_date, command.rate_id, room=room
                ).total

            booking = Booking.objects.create(
                property=property_obj,
                room=room,
                guest=guest,
                rate=rate,
                booking_number=services.next_booking_number(uow, property_obj),
                check_in=dates.start_date,
                check_out=dates.end_date,
                adults=command.adults,
                children=command.children,
                total_amount=total_amount,
                source=command.source,
                source_reference=command.source_reference or '',
                notes=command.notes or '',
            )
            services.record_history(
                booking,
                BookingHistory.Action.CREATED,
                None,
                _snapshot(booking, ('status', 'room_id', 'guest_id', 'check_in', 'check_out', 'total_amount')),
            )
            uow.add_event(BookingCreated(
                property_id=property_obj.pk,
                aggregate_id=booking.pk,
                booking_number=booking.booking_number,
                room_id=room.pk,
                guest_id=guest.pk,
                check_in=booking.check_in,
                check_out=booking.check_out,
                total_amount=Money(total_amount, property_obj.currency),
            ))
            uow.flush()
            booking.refresh_from_db()

        logger.info(f"Booking {booking.booking_number} created (ID: {booking.pk})")
        return booking


class UpdateBookingHandler:
    def handle(self, command: UpdateBookingCommand) -> Booking:
        unknown = set(command.patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationFailed("These fields cannot be updated", fields=sorted(unknown))

        with translate_database_errors(), TenantUnitOfWork(command.property_id) as uow:
            booking = _get_booking(uow, command.booking_id)
            status = booking.get_status()
            if status.is_terminal():
                raise InvalidStateTransition(
                    status,
                    'modified',
                    f"Booking in status '{status.value}' cannot be modified",
                )

            patch = dict(command.patch)
            before = _snapshot(booking, patch.keys())

            room = booking.room
            if 'room_id' in patch and patch['room_id'] != booking.room_id:
                room = services.get_room(uow, patch['room_id'], lock=True)
            elif STAY_FIELDS & patch.keys():
                room = services.get_room(uow, booking.room_id, lock=True)

            if 'guest_id' in patch and patch['guest_id'] != booking.guest_id:
                _get_guest(uow, patch['guest_id'])
            if 'rate_id' in patch and patch['rate_id'] is not None:
                services.get_rate(uow, patch['rate_id'])
            if 'source' in patch and patch['source'] not in Booking.Source.values:
                raise ValidationFailed(f"Unknown booking source '{patch['source']}'", source=patch['source'])

            dates = DateRange(
                patch.get('check_in', booking.check_in),
                patch.get('check_out', booking.check_out),
            )
            _validate_occupancy(room, patch.get('adults', booking.adults), patch.get('children', booking.children))

            stay_changed = (
                room.pk != booking.room_id
                or dates.start_date != booking.check_in
                or dates.end_date != booking.check_out
            )
            if stay_changed:
                services.ensure_room_is_available(uow, room, dates, exclude_booking_id=booking.pk)

            if 'total_amount' in patch:
                _validate_total(patch['total_amount'])
            elif stay_changed or 'rate_id' in patch:
                patch['total_amount'] = services.price_stay(
                    uow,
                    room.pk,
                    dates.start_date,
                    dates.end_date,
                    patch.get('rate_id', booking.rate_id),
                    room=room,
                ).total
                before['total_amount'] = booking.total_amount

            for name, value in patch.items():
                if name in ('notes', 'source_reference') and value is None:
                    value = ''
                setattr(booking, name, value)
            booking.check_in, booking.check_out = dates.start_date, dates.end_date
            booking.room = room
            booking.save()

            after = _snapshot(booking, before.keys())
            changes = {
                name: {'old': before[name], 'new': after[name]}
                for name in before
                if before[name] != after[name]
            }
            if changes:
                services.record_history(
                    booking,
                    BookingHistory.Action.UPDATED,
                    {name: change['old'] for name, change in changes.items()},
                    {name: change['new'] for name, change in changes.items()},
                )
                uow.add_event(BookingUpdated(
                    property_id=booking.property_id,
                    aggregate_id=booking.pk,
                    changes=changes,
                ))
            uow.flush()
            booking.refresh_from_db()

        logger.info(f"Booking {booking.booking_number} updated: {sorted(changes)}")
        return booking


class TransitionBookingHandler:
    """
    Handler for lifecycle transitions

    Check-in is refused before the check-in date in the property's
    timezone (``BOOKING_ENFORCE_CHECK_IN_DATE``). Cancellation requires a
    reason and frees the room immediately.
    """

    def handle(self, command: TransitionBookingCommand) -> Booking:
        with translate_database_errors(), TenantUnitOfWork(command.property_id) as uow:
            booking = _get_booking(uow, command.booking_id)
            current = booking.get_status()
            target = ensure_transition_allowed(current, command.target_status)
            reason = (command.reason or '').strip()

            if target is BookingStatus.CHECKED_IN and settings.BOOKING_ENFORCE_CHECK_IN_DATE:
                today = services.property_today(booking.property)
                if today < booking.check_in:
                    raise InvalidStateTransition(
                        current,
                        target,
                        f"Check-in is not possible before {booking.check_in.isoformat()}",
                    )

            update_fields = ['status', 'updated_at']
            if target is BookingStatus.CANCELLED:
                if not reason:
                    raise ValidationFailed("A cancellation reason is required")
                booking.cancelled_at = timezone.now()
                booking.cancel_reason = reason
                update_fields += ['cancelled_at', 'cancel_reason']

            booking.status = target.value
            booking.save(update_fields=update_fields)

            action = (
                BookingHistory.Action.CANCELLED
                if target is BookingStatus.CANCELLED
                else BookingHistory.Action.STATUS_CHANGED
            )
            services.record_history(
                booking,
                action,
                {'status': current.value},
                {'status': target.value, 'reason': reason or None},
            )

            event_class = BookingCancelled if target is BookingStatus.CANCELLED else BookingStatusChanged
            uow.add_event(event_class(
                property_id=booking.property_id,
                aggregate_id=booking.pk,
                old_status=current.value,
                new_status=target.value,
                reason=reason or None,
            ))
            uow.flush()
            booking.refresh_from_db()

        logger.info(f"Booking {booking.booking_number}: {current.value} -> {target.value}")
        return booking


class RecordPaymentHandler:
    def handle(self, command: RecordPaymentCommand):
        from apps.finances import ledger

        with translate_database_errors(), TenantUnitOfWork(command.property_id) as uow:
            return ledger.record_payment(
                uow,
                command.booking_id,
                command.amount,
                command.method,
                reference=command.reference,
                notes=command.notes,
            )


class DeletePaymentHandler:
    def handle(self, command: DeletePaymentCommand) -> None:
        from apps.finances import ledger

        with translate_database_errors(), TenantUnitOfWork(command.property_id) as uow:
            ledger.delete_payment(uow, command.payment_id)


def register_command_handlers(bus) -> None:
    """Wire every booking command to its handler on ``bus``."""
    handlers = {
        CheckAvailabilityCommand: CheckAvailabilityHandler(),
        PriceStayCommand: PriceStayHandler(),
        CreateBookingCommand: CreateBookingHandler(),
        UpdateBookingCommand: UpdateBookingHandler(),
        TransitionBookingCommand: TransitionBookingHandler(),
        RecordPaymentCommand: RecordPaymentHandler(),
        DeletePaymentCommand: DeletePaymentHandler(),
    }
    for command_type, handler in handlers.items():
        if not bus.has_command_handler(command_type):
            bus.register_command_handler(command_type, handler.handle)
