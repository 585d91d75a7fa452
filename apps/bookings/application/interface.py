"""
Public entry points of the booking core.

Dashboard views, channel-manager webhooks and Celery tasks call these
functions instead of touching models. Each call dispatches one command
through the message bus; a ``ConcurrencyConflict`` is retried once
before it reaches the caller.
"""

from datetime import date
from typing import Optional

from shared.application.message_bus import message_bus
from shared.infrastructure.db import run_with_retry
from shared.infrastructure.tenancy import clear_tenant_context, set_tenant_context  # noqa: F401

from .command_handlers import (
    CheckAvailabilityCommand,
    CreateBookingCommand,
    DeletePaymentCommand,
    PriceStayCommand,
    RecordPaymentCommand,
    TransitionBookingCommand,
    UpdateBookingCommand,
)

__all__ = [
    "check_availability",
    "price_stay",
    "create_booking",
    "update_booking",
    "transition_booking",
    "record_payment",
    "delete_payment",
    "set_tenant_context",
    "clear_tenant_context",
]


def _dispatch(command):
    return run_with_retry(message_bus.handle_command, command)


def check_availability(
    property_id: int,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    return _dispatch(CheckAvailabilityCommand(property_id, room_id, check_in, check_out, exclude_booking_id))


def price_stay(property_id: int, room_id: int, check_in: date, check_out: date, rate_id: Optional[int] = None):
    return _dispatch(PriceStayCommand(property_id, room_id, check_in, check_out, rate_id))


def create_booking(
    property_id: int,
    room_id: int,
    guest_id: int,
    check_in: date,
    check_out: date,
    adults: int = 1,
    children: int = 0,
    source: str = "direct",
    total_amount_override: Optional[int] = None,
    rate_id: Optional[int] = None,
    notes: Optional[str] = None,
    source_reference: Optional[str] = None,
):
    return _dispatch(CreateBookingCommand(
        property_id=property_id,
        room_id=room_id,
        guest_id=guest_id,
        check_in=check_in,
        check_out=check_out,
        adults=adults,
        children=children,
        source=source,
        total_amount_override=total_amount_override,
        rate_id=rate_id,
        notes=notes,
        source_reference=source_reference,
    ))


def update_booking(property_id: int, booking_id: int, **patch):
    return _dispatch(UpdateBookingCommand(property_id, booking_id, patch))


def transition_booking(property_id: int, booking_id: int, target_status: str, reason: Optional[str] = None):
    return _dispatch(TransitionBookingCommand(property_id, booking_id, target_status, reason))


def record_payment(
    property_id: int,
    booking_id: int,
    amount: int,
    method: str,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
):
    return _dispatch(RecordPaymentCommand(property_id, booking_id, amount, method, reference, notes))


def delete_payment(property_id: int, payment_id: int) -> None:
    _dispatch(DeletePaymentCommand(property_id, payment_id))
