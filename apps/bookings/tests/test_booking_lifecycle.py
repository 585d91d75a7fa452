from datetime import timedelta

import pytest

from apps.bookings import services
from apps.bookings.application import interface
from apps.bookings.domain.events import BookingCancelled, BookingCreated
from apps.bookings.models import Booking, BookingHistory
from apps.guests.models import Guest
from apps.properties.models import Rate
from shared.application.message_bus import message_bus
from shared.domain.exceptions import (
    GuestNotFound,
    InvalidStateTransition,
    RateNotFound,
    RoomNotAvailable,
    ValidationFailed,
)
from shared.infrastructure.tenancy import privileged, tenant_context


def _create(hotel, check_in, check_out, **kwargs):
    return interface.create_booking(
        hotel.property.pk, hotel.room.pk, hotel.guest.pk, check_in, check_out, **kwargs
    )


@pytest.mark.django_db
class TestCreateBooking:
    def test_prices_with_room_base_price_and_numbers_sequentially(self, hotel, stay, today):
        first = _create(hotel, *stay, adults=2, children=1)
        second = _create(hotel, stay[1], stay[1] + timedelta(days=1))

        assert first.booking_number == f"BK-{today.year}-0001"
        assert second.booking_number == f"BK-{today.year}-0002"
        assert first.status == "new"
        assert first.nights == 3
        assert first.total_amount == 1_500_000
        assert first.paid_amount == 0

    def test_numbering_is_per_property(self, hotel, other_hotel, stay, today):
        _create(hotel, *stay)
        other = interface.create_booking(
            other_hotel.property.pk, other_hotel.room.pk, other_hotel.guest.pk, *stay
        )

        assert other.booking_number == f"BK-{today.year}-0001"

    def test_explicit_rate_and_override(self, hotel, stay):
        with tenant_context(hotel.property.pk):
            rate = Rate.objects.create(property=hotel.property, name="Corporate", type="base", price=420_000)

        by_rate = _create(hotel, *stay, rate_id=rate.pk)
        by_override = interface.create_booking(
            hotel.property.pk, hotel.second_room.pk, hotel.guest.pk, *stay, total_amount_override=999_000
        )

        assert by_rate.total_amount == 1_260_000
        assert by_rate.rate_id == rate.pk
        assert by_override.total_amount == 999_000

    def test_inactive_rate_is_not_found(self, hotel, stay):
        with tenant_context(hotel.property.pk):
            rate = Rate.objects.create(
                property=hotel.property, name="Old", type="base", price=1, is_active=False
            )

        with pytest.raises(RateNotFound):
            _create(hotel, *stay, rate_id=rate.pk)

    def test_writes_history_and_updates_guest_revenue(self, hotel, stay):
        booking = _create(hotel, *stay)

        with tenant_context(hotel.property.pk):
            entries = list(BookingHistory.objects.filter(booking=booking))
            guest = Guest.objects.get(pk=hotel.guest.pk)
        assert [entry.action for entry in entries] == [BookingHistory.Action.CREATED]
        assert entries[0].new_value["status"] == "new"
        assert guest.total_revenue == booking.total_amount

    def test_rejects_occupancy_above_capacity(self, hotel, stay):
        with pytest.raises(ValidationFailed):
            _create(hotel, *stay, adults=3)
        with pytest.raises(ValidationFailed):
            _create(hotel, *stay, adults=0)

    def test_guest_of_another_property_is_not_found(self, hotel, other_hotel, stay):
        with pytest.raises(GuestNotFound):
            interface.create_booking(hotel.property.pk, hotel.room.pk, other_hotel.guest.pk, *stay)

    def test_events_are_published_after_commit(self, hotel, stay, django_capture_on_commit_callbacks):
        received = []
        message_bus.register_event_handler(BookingCreated, received.append)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                booking = _create(hotel, *stay)
        finally:
            message_bus.unregister_event_handler(BookingCreated, received.append)

        assert [event.aggregate_id for event in received] == [booking.pk]
        assert received[0].total_amount.amount == booking.total_amount

    def test_competing_insert_after_room_lookup_is_seen(self, hotel, stay, monkeypatch):
        # the competitor books the same nights between room lookup and the overlap check
        real_get_room = services.get_room
        competitors = []
        calls = []

        def get_room_then_compete(uow, room_id, **kwargs):
            room = real_get_room(uow, room_id, **kwargs)
            calls.append(room_id)
            if len(calls) == 1:
                competitors.append(_create(hotel, *stay))
            return room

        monkeypatch.setattr(services, "get_room", get_room_then_compete)

        with pytest.raises(RoomNotAvailable) as excinfo:
            _create(hotel, *stay)

        check_in, check_out = stay
        assert len(competitors) == 1
        assert competitors[0].check_in == check_in
        assert len(excinfo.value.details["blocked_dates"]) == (check_out - check_in).days
        with privileged():
            # nothing of the rejected transaction is left behind
            assert not Booking.objects.filter(room=hotel.room).exists()


@pytest.mark.django_db
class TestUpdateBooking:
    def test_moving_dates_reprices_and_records_history(self, hotel, stay):
        booking = _create(hotel, *stay)

        updated = interface.update_booking(
            hotel.property.pk, booking.pk, check_out=stay[1] + timedelta(days=1)
        )

        assert updated.nights == 4
        assert updated.total_amount == 2_000_000
        with tenant_context(hotel.property.pk):
            entry = BookingHistory.objects.filter(booking=booking).last()
            guest = Guest.objects.get(pk=hotel.guest.pk)
        assert entry.action == BookingHistory.Action.UPDATED
        assert entry.old_value["total_amount"] == 1_500_000
        assert guest.total_revenue == 2_000_000

    def test_moving_onto_taken_room_is_rejected(self, hotel, stay):
        booking = _create(hotel, *stay)
        interface.create_booking(hotel.property.pk, hotel.second_room.pk, hotel.guest.pk, *stay)

        with pytest.raises(RoomNotAvailable):
            interface.update_booking(hotel.property.pk, booking.pk, room_id=hotel.second_room.pk)

    def test_changing_guest_moves_revenue(self, hotel, stay):
        with privileged():
            other_guest = Guest.objects.create(
                property=hotel.property, first_name="Dilnoza", last_name="Rashidova", phone="+998935554433"
            )
        booking = _create(hotel, *stay)

        interface.update_booking(hotel.property.pk, booking.pk, guest_id=other_guest.pk)

        with tenant_context(hotel.property.pk):
            assert Guest.objects.get(pk=hotel.guest.pk).total_revenue == 0
            assert Guest.objects.get(pk=other_guest.pk).total_revenue == booking.total_amount

    def test_unknown_fields_are_rejected(self, hotel, stay):
        booking = _create(hotel, *stay)

        with pytest.raises(ValidationFailed) as excinfo:
            interface.update_booking(hotel.property.pk, booking.pk, paid_amount=10)
        assert excinfo.value.details == {"fields": ["paid_amount"]}

    def test_terminal_booking_cannot_be_modified(self, hotel, stay):
        booking = _create(hotel, *stay)
        interface.transition_booking(hotel.property.pk, booking.pk, "cancelled", "Duplicate")

        with pytest.raises(InvalidStateTransition):
            interface.update_booking(hotel.property.pk, booking.pk, notes="late request")


@pytest.mark.django_db
class TestTransitionBooking:
    def test_full_stay(self, hotel, today):
        booking = _create(hotel, today, today + timedelta(days=2))

        interface.transition_booking(hotel.property.pk, booking.pk, "confirmed")
        interface.transition_booking(hotel.property.pk, booking.pk, "checked_in")
        checked_out = interface.transition_booking(hotel.property.pk, booking.pk, "checked_out")

        assert checked_out.status == "checked_out"
        with tenant_context(hotel.property.pk):
            guest = Guest.objects.get(pk=hotel.guest.pk)
            actions = list(
                BookingHistory.objects.filter(booking=booking).values_list("action", flat=True)
            )
        assert guest.visit_count == 1
        assert actions == ["created", "status_changed", "status_changed", "status_changed"]

    def test_walk_in_goes_straight_to_checked_in(self, hotel, today):
        booking = _create(hotel, today, today + timedelta(days=1), source=Booking.Source.WALK_IN)

        assert interface.transition_booking(hotel.property.pk, booking.pk, "checked_in").status == "checked_in"

    def test_check_in_before_arrival_date_is_refused(self, hotel, stay):
        booking = _create(hotel, *stay)

        with pytest.raises(InvalidStateTransition):
            interface.transition_booking(hotel.property.pk, booking.pk, "checked_in")

    def test_early_check_in_when_enforcement_is_off(self, hotel, stay, settings):
        settings.BOOKING_ENFORCE_CHECK_IN_DATE = False
        booking = _create(hotel, *stay)

        assert interface.transition_booking(hotel.property.pk, booking.pk, "checked_in").status == "checked_in"

    def test_cancel_requires_reason_and_stamps_booking(self, hotel, stay):
        booking = _create(hotel, *stay)

        with pytest.raises(ValidationFailed):
            interface.transition_booking(hotel.property.pk, booking.pk, "cancelled", "  ")

        cancelled = interface.transition_booking(hotel.property.pk, booking.pk, "cancelled", "Flight cancelled")
        assert cancelled.status == "cancelled"
        assert cancelled.cancel_reason == "Flight cancelled"
        assert cancelled.cancelled_at is not None
        with tenant_context(hotel.property.pk):
            assert Guest.objects.get(pk=hotel.guest.pk).total_revenue == 0

    def test_cancel_publishes_cancelled_event(self, hotel, stay, django_capture_on_commit_callbacks):
        booking = _create(hotel, *stay)
        received = []
        message_bus.register_event_handler(BookingCancelled, received.append)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                interface.transition_booking(hotel.property.pk, booking.pk, "cancelled", "No longer needed")
        finally:
            message_bus.unregister_event_handler(BookingCancelled, received.append)

        assert [(event.old_status, event.new_status) for event in received] == [("new", "cancelled")]

    def test_illegal_transition_leaves_booking_untouched(self, hotel, stay):
        booking = _create(hotel, *stay)

        with pytest.raises(InvalidStateTransition) as excinfo:
            interface.transition_booking(hotel.property.pk, booking.pk, "checked_out")

        assert excinfo.value.details == {"current": "new", "requested": "checked_out"}
        with tenant_context(hotel.property.pk):
            assert Booking.objects.get(pk=booking.pk).status == "new"
