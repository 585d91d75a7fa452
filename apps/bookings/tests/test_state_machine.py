import pytest

from apps.bookings.domain.entities import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    ensure_transition_allowed,
)
from shared.domain.exceptions import InvalidStateTransition

ALLOWED = {
    ("new", "confirmed"),
    ("new", "checked_in"),
    ("new", "cancelled"),
    ("new", "no_show"),
    ("confirmed", "checked_in"),
    ("confirmed", "cancelled"),
    ("confirmed", "no_show"),
    ("checked_in", "checked_out"),
}

ALL_EDGES = [(current.value, target.value) for current in BookingStatus for target in BookingStatus]


@pytest.mark.parametrize("current,target", ALL_EDGES)
def test_transition_table(current, target):
    if (current, target) in ALLOWED:
        assert ensure_transition_allowed(current, target) is BookingStatus(target)
    else:
        with pytest.raises(InvalidStateTransition) as excinfo:
            ensure_transition_allowed(current, target)
        assert excinfo.value.details == {"current": current, "requested": target}


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {
        BookingStatus.CHECKED_OUT,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }
    assert all(not ALLOWED_TRANSITIONS[status] for status in TERMINAL_STATUSES)


def test_only_cancelled_releases_the_room():
    assert BookingStatus.CANCELLED not in BLOCKING_STATUSES
    assert BookingStatus.NO_SHOW in BLOCKING_STATUSES
    assert len(BLOCKING_STATUSES) == len(BookingStatus) - 1


def test_unknown_status_is_an_invalid_transition():
    with pytest.raises(InvalidStateTransition) as excinfo:
        ensure_transition_allowed("new", "archived")
    assert excinfo.value.status_code == 409
