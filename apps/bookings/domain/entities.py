"""
Booking Domain Entities

- BookingStatus: FSM states for the booking lifecycle
- ALLOWED_TRANSITIONS: the only legal edges of that FSM
"""

from enum import Enum
from typing import Dict, FrozenSet

from shared.domain.exceptions import InvalidStateTransition


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - NEW -> CONFIRMED, CHECKED_IN (walk-in), CANCELLED, NO_SHOW
    - CONFIRMED -> CHECKED_IN, CANCELLED, NO_SHOW
    - CHECKED_IN -> CHECKED_OUT
    CHECKED_OUT, CANCELLED and NO_SHOW are terminal.
    """
    NEW = 'new'
    CONFIRMED = 'confirmed'
    CHECKED_IN = 'checked_in'
    CHECKED_OUT = 'checked_out'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').capitalize()

    @classmethod
    def choices(cls):
        return [(status.value, status.label) for status in cls]

    @classmethod
    def parse(cls, value) -> 'BookingStatus':
        """Accept an enum member or its string value"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidStateTransition(
                requested=value,
                message=f"Unknown booking status '{value}'",
            )

    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def blocks_room(self) -> bool:
        # Only a cancellation releases the nights; a no-show still blocks them.
        return self is not BookingStatus.CANCELLED


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.NEW: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.CHECKED_IN,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.CHECKED_IN,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status in BookingStatus if status.is_terminal())

BLOCKING_STATUSES = frozenset(status for status in BookingStatus if status.blocks_room())


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition_allowed(current, target) -> BookingStatus:
    """
    Validate one edge of the FSM and return the parsed target.

    Raises InvalidStateTransition for unknown statuses, self-transitions
    and anything outside ``ALLOWED_TRANSITIONS``.
    """
    current = BookingStatus.parse(current)
    target = BookingStatus.parse(target)
    if not can_transition(current, target):
        raise InvalidStateTransition(current, target)
    return target
