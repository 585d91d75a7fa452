"""
Booking Domain Events

Published through the message bus after the unit of work that raised
them has committed. ``aggregate_id`` is the booking id.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from shared.domain.base import DomainEvent
from shared.domain.value_objects import Money


@dataclass
class BookingCreated(DomainEvent):
    """A booking was created and holds its room for the stay"""
    booking_number: str = ''
    room_id: Optional[int] = None
    guest_id: Optional[int] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    total_amount: Optional[Money] = None


@dataclass
class BookingUpdated(DomainEvent):
    """Dates, room, guest or pricing of a booking changed"""
    changes: Dict[str, Dict[str, object]] = field(default_factory=dict)


@dataclass
class BookingStatusChanged(DomainEvent):
    """
    A lifecycle transition happened.

    Cancellation releases the room for new bookings.
    """
    old_status: str = ''
    new_status: str = ''
    reason: Optional[str] = None


@dataclass
class BookingCancelled(BookingStatusChanged):
    """The booking was cancelled and its nights are free again"""


@dataclass
class PaymentRecorded(DomainEvent):
    """A payment or refund was appended to the ledger"""
    payment_id: Optional[int] = None
    amount: Optional[Money] = None
    paid_amount: Optional[Money] = None


@dataclass
class PaymentDeleted(DomainEvent):
    """A payment was removed from the ledger"""
    payment_id: Optional[int] = None
    amount: Optional[Money] = None
