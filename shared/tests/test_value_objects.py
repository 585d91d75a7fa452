from datetime import date

import pytest

from apps.bookings.domain.inventory import RoomInventory
from shared.domain.exceptions import InvalidDateRange, RoomNotAvailable, ValidationFailed
from shared.domain.value_objects import DateRange, Money


def test_adjacent_ranges_do_not_overlap():
    first = DateRange(date(2025, 3, 25), date(2025, 3, 28))
    second = DateRange(date(2025, 3, 28), date(2025, 3, 31))

    assert not first.overlaps_with(second)
    assert first.overlaps_with(DateRange(date(2025, 3, 27), date(2025, 3, 30)))


def test_nights_exclude_check_out():
    stay = DateRange(date(2025, 12, 30), date(2026, 1, 2))

    assert len(stay) == 3
    assert list(stay.nights()) == [date(2025, 12, 30), date(2025, 12, 31), date(2026, 1, 1)]
    assert stay.contains(date(2025, 12, 30))
    assert not stay.contains(date(2026, 1, 2))


def test_empty_range_is_rejected():
    with pytest.raises(InvalidDateRange) as excinfo:
        DateRange(date(2025, 1, 1), date(2025, 1, 1))
    assert excinfo.value.details == {"check_in": "2025-01-01", "check_out": "2025-01-01"}


def test_money_allows_refunds_but_not_mixed_currencies():
    refund = Money(-50_000, "UZS")

    assert refund.is_negative()
    assert (Money(80_000) + refund).amount == 30_000
    with pytest.raises(ValidationFailed):
        Money(1, "USD") + Money(1, "EUR")
    with pytest.raises(ValidationFailed):
        Money(10.5)


def test_inventory_reports_every_taken_night_once():
    inventory = RoomInventory(room_id=3)
    inventory.add_booking(1, date(2025, 5, 1), date(2025, 5, 4))
    inventory.add_block(2, date(2025, 5, 3), date(2025, 5, 6))

    stay = DateRange(date(2025, 5, 2), date(2025, 5, 8))

    assert inventory.blocked_dates(stay) == [
        date(2025, 5, 2),
        date(2025, 5, 3),
        date(2025, 5, 4),
        date(2025, 5, 5),
    ]
    assert inventory.can_allocate(DateRange(date(2025, 5, 6), date(2025, 5, 9)))
    with pytest.raises(RoomNotAvailable) as excinfo:
        inventory.ensure_can_allocate(stay)
    assert excinfo.value.details["blocked_dates"][0] == "2025-05-02"
