from datetime import timedelta

import pytest

from apps.bookings.application import interface
from apps.properties.models import Room, RoomBlock
from shared.domain.exceptions import InvalidDateRange, RoomNotAvailable, RoomNotFound
from shared.infrastructure.tenancy import privileged


def _book(hotel, check_in, check_out, room=None):
    return interface.create_booking(
        hotel.property.pk,
        (room or hotel.room).pk,
        hotel.guest.pk,
        check_in,
        check_out,
    )


def test_free_room_is_available(hotel, stay):
    assert interface.check_availability(hotel.property.pk, hotel.room.pk, *stay)


def test_overlapping_booking_is_rejected_with_taken_nights(hotel, stay):
    check_in, check_out = stay
    _book(hotel, check_in, check_out)

    with pytest.raises(RoomNotAvailable) as excinfo:
        _book(hotel, check_in + timedelta(days=2), check_out + timedelta(days=2))

    assert excinfo.value.details == {
        "room_id": hotel.room.pk,
        "blocked_dates": [(check_in + timedelta(days=2)).isoformat()],
    }
    assert not interface.check_availability(hotel.property.pk, hotel.room.pk, check_in, check_out)


def test_same_day_turnover_is_allowed(hotel, stay):
    check_in, check_out = stay
    _book(hotel, check_in, check_out)

    following = _book(hotel, check_out, check_out + timedelta(days=2))
    preceding = _book(hotel, check_in - timedelta(days=2), check_in)

    assert following.check_in == check_out
    assert preceding.check_out == check_in


def test_other_room_is_unaffected(hotel, stay):
    _book(hotel, *stay)

    assert interface.check_availability(hotel.property.pk, hotel.second_room.pk, *stay)


def test_cancellation_frees_the_room(hotel, stay):
    booking = _book(hotel, *stay)
    interface.transition_booking(hotel.property.pk, booking.pk, "cancelled", "Guest changed plans")

    assert interface.check_availability(hotel.property.pk, hotel.room.pk, *stay)
    assert _book(hotel, *stay).status == "new"


def test_no_show_keeps_blocking(hotel, stay):
    booking = _book(hotel, *stay)
    interface.transition_booking(hotel.property.pk, booking.pk, "no_show")

    assert not interface.check_availability(hotel.property.pk, hotel.room.pk, *stay)


def test_room_block_makes_nights_unavailable(hotel, stay):
    check_in, check_out = stay
    with privileged():
        RoomBlock.objects.create(
            room=hotel.room,
            date_from=check_out - timedelta(days=1),
            date_to=check_out + timedelta(days=3),
            reason="Plumbing",
        )

    with pytest.raises(RoomNotAvailable) as excinfo:
        _book(hotel, check_in, check_out)
    assert excinfo.value.details["blocked_dates"] == [(check_out - timedelta(days=1)).isoformat()]
    assert interface.check_availability(hotel.property.pk, hotel.room.pk, check_in, check_out - timedelta(days=1))


def test_room_out_of_service_is_never_available(hotel, stay):
    with privileged():
        Room.objects.filter(pk=hotel.room.pk).update(status=Room.Status.MAINTENANCE)

    assert not interface.check_availability(hotel.property.pk, hotel.room.pk, *stay)
    with pytest.raises(RoomNotAvailable) as excinfo:
        _book(hotel, *stay)
    assert len(excinfo.value.details["blocked_dates"]) == 3


def test_excluded_booking_does_not_block_itself(hotel, stay):
    booking = _book(hotel, *stay)

    assert interface.check_availability(
        hotel.property.pk, hotel.room.pk, *stay, exclude_booking_id=booking.pk
    )


def test_invalid_range_is_rejected(hotel, stay):
    check_in, _ = stay
    with pytest.raises(InvalidDateRange):
        interface.check_availability(hotel.property.pk, hotel.room.pk, check_in, check_in)


def test_room_of_another_property_is_not_found(hotel, other_hotel, stay):
    with pytest.raises(RoomNotFound):
        interface.check_availability(hotel.property.pk, other_hotel.room.pk, *stay)
