import pytest

from apps.bookings.application import interface
from apps.bookings.models import Booking
from apps.finances.models import Payment
from apps.guests.models import Guest
from apps.properties.models import Property, Room
from shared.application.uow import TenantUnitOfWork, current_unit_of_work
from shared.domain.exceptions import BookingNotFound, TenantMismatch, ValidationFailed
from shared.infrastructure.tenancy import (
    get_current_property_id,
    privileged,
    set_tenant_context,
    tenant_context,
)


@pytest.fixture
def bookings(hotel, other_hotel, stay):
    own = interface.create_booking(hotel.property.pk, hotel.room.pk, hotel.guest.pk, *stay)
    foreign = interface.create_booking(
        other_hotel.property.pk, other_hotel.room.pk, other_hotel.guest.pk, *stay
    )
    interface.record_payment(other_hotel.property.pk, foreign.pk, 100_000, "cash")
    return own, foreign


def test_reads_without_active_property_return_nothing(bookings):
    assert get_current_property_id() is None
    assert not Property.objects.exists()
    assert not Room.objects.exists()
    assert not Booking.objects.exists()
    assert not Payment.objects.exists()


def test_reads_only_see_the_active_property(hotel, bookings):
    own, foreign = bookings

    with tenant_context(hotel.property.pk):
        assert list(Booking.objects.values_list("pk", flat=True)) == [own.pk]
        assert list(Property.objects.values_list("pk", flat=True)) == [hotel.property.pk]
        assert not Payment.objects.exists()
        assert not Guest.objects.filter(pk=foreign.guest_id).exists()


def test_privileged_path_sees_every_property(bookings):
    with privileged():
        assert Booking.objects.count() == 2
        assert Payment.objects.count() == 1


def test_writes_to_another_property_are_refused(hotel, other_hotel, bookings):
    _, foreign = bookings

    with tenant_context(hotel.property.pk):
        foreign.notes = "moved"
        with pytest.raises(TenantMismatch):
            foreign.save()
        with pytest.raises(TenantMismatch):
            Room.objects.create(property=other_hotel.property, name="999", base_price=1)


def test_writes_without_active_property_are_refused(hotel):
    with pytest.raises(TenantMismatch):
        Room.objects.create(property=hotel.property, name="201", base_price=1)


def test_commands_cannot_reach_other_properties(hotel, bookings):
    _, foreign = bookings

    with pytest.raises(BookingNotFound):
        interface.transition_booking(hotel.property.pk, foreign.pk, "cancelled", "not ours")
    with pytest.raises(BookingNotFound):
        interface.record_payment(hotel.property.pk, foreign.pk, 1_000, "cash")


def test_unknown_property_is_a_tenant_mismatch(hotel, stay):
    with pytest.raises(TenantMismatch):
        interface.create_booking(987_654, hotel.room.pk, hotel.guest.pk, *stay)


def test_switching_property_inside_a_scope_is_refused(hotel, other_hotel, stay):
    with tenant_context(hotel.property.pk):
        with pytest.raises(TenantMismatch):
            set_tenant_context(other_hotel.property.pk)
        with pytest.raises(TenantMismatch):
            interface.check_availability(other_hotel.property.pk, other_hotel.room.pk, *stay)
        assert get_current_property_id() == hotel.property.pk


@pytest.mark.parametrize("property_id", [None, 0, -3, "abc", True])
def test_invalid_property_ids_are_rejected(property_id):
    with pytest.raises(ValidationFailed):
        set_tenant_context(property_id)


def test_unit_of_work_resets_scope_after_failure(hotel):
    with pytest.raises(RuntimeError):
        with TenantUnitOfWork(hotel.property.pk) as uow:
            assert current_unit_of_work() is uow
            assert get_current_property_id() == hotel.property.pk
            raise RuntimeError("boom")

    assert current_unit_of_work() is None
    assert get_current_property_id() is None


def test_unit_of_work_rolls_back_on_failure(hotel):
    with pytest.raises(RuntimeError):
        with TenantUnitOfWork(hotel.property.pk):
            Room.objects.create(property=hotel.property, name="301", base_price=1)
            raise RuntimeError("boom")

    with privileged():
        assert not Room.objects.filter(name="301").exists()
