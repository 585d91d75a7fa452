from datetime import timedelta

import pytest

from apps.bookings.application import interface
from apps.bookings.models import Booking
from apps.finances import ledger
from apps.finances.models import Payment
from apps.guests.models import Guest
from shared.domain.exceptions import (
    PaymentNotAllowed,
    PaymentNotFound,
    RefundExceedsPaid,
    ValidationFailed,
)
from shared.infrastructure.tenancy import privileged, tenant_context


@pytest.fixture
def booking(hotel, stay):
    # 3 nights at 500 000
    return interface.create_booking(hotel.property.pk, hotel.room.pk, hotel.guest.pk, *stay)


def _paid_amount(hotel, booking_id):
    with tenant_context(hotel.property.pk):
        return Booking.objects.get(pk=booking_id).paid_amount


def test_payments_and_refunds_sum_into_paid_amount(hotel, booking):
    first = interface.record_payment(hotel.property.pk, booking.pk, 1_000_000, "cash")
    second = interface.record_payment(hotel.property.pk, booking.pk, -200_000, "card", reference="RF-1")

    assert first.paid_amount == 1_000_000
    assert first.balance == 500_000
    assert first.warnings == []
    assert second.paid_amount == 800_000
    assert second.payment.is_refund()
    assert _paid_amount(hotel, booking.pk) == 800_000


def test_overpayment_is_accepted_with_warning(hotel, booking):
    receipt = interface.record_payment(hotel.property.pk, booking.pk, 1_600_000, "transfer")

    assert receipt.warnings == [ledger.OVERPAID]
    assert receipt.balance == -100_000
    assert _paid_amount(hotel, booking.pk) == 1_600_000


def test_refund_above_paid_amount_is_rejected(hotel, booking):
    interface.record_payment(hotel.property.pk, booking.pk, 300_000, "cash")

    with pytest.raises(RefundExceedsPaid) as excinfo:
        interface.record_payment(hotel.property.pk, booking.pk, -300_001, "cash")

    assert excinfo.value.details == {"paid_amount": 300_000, "requested": -300_001}
    with tenant_context(hotel.property.pk):
        assert Payment.objects.filter(booking_id=booking.pk).count() == 1
    assert _paid_amount(hotel, booking.pk) == 300_000


@pytest.mark.parametrize("amount,method", [(0, "cash"), (100, "barter"), (10.5, "cash"), (True, "cash")])
def test_invalid_payment_input(hotel, booking, amount, method):
    with pytest.raises(ValidationFailed):
        interface.record_payment(hotel.property.pk, booking.pk, amount, method)


def test_cancelled_booking_accepts_refunds_only(hotel, booking):
    interface.record_payment(hotel.property.pk, booking.pk, 500_000, "cash")
    interface.transition_booking(hotel.property.pk, booking.pk, "cancelled", "Visa refused")

    with pytest.raises(PaymentNotAllowed):
        interface.record_payment(hotel.property.pk, booking.pk, 100_000, "cash")

    receipt = interface.record_payment(hotel.property.pk, booking.pk, -500_000, "cash")
    assert receipt.paid_amount == 0


def test_delete_payment_recomputes_paid_amount(hotel, booking):
    kept = interface.record_payment(hotel.property.pk, booking.pk, 400_000, "cash")
    removed = interface.record_payment(hotel.property.pk, booking.pk, 100_000, "card")

    interface.delete_payment(hotel.property.pk, removed.payment.pk)

    assert _paid_amount(hotel, booking.pk) == kept.paid_amount
    with pytest.raises(PaymentNotFound):
        interface.delete_payment(hotel.property.pk, removed.payment.pk)


def test_deleting_payment_behind_a_refund_is_rejected(hotel, booking):
    payment = interface.record_payment(hotel.property.pk, booking.pk, 400_000, "cash")
    interface.record_payment(hotel.property.pk, booking.pk, -300_000, "cash")

    with pytest.raises(RefundExceedsPaid):
        interface.delete_payment(hotel.property.pk, payment.payment.pk)


def test_payment_rows_are_append_only(hotel, booking):
    receipt = interface.record_payment(hotel.property.pk, booking.pk, 100_000, "cash")

    with tenant_context(hotel.property.pk):
        payment = Payment.objects.get(pk=receipt.payment.pk)
        payment.amount = 5
        with pytest.raises(ValidationFailed):
            payment.save()


def test_payment_of_another_property_is_not_found(hotel, other_hotel, booking):
    receipt = interface.record_payment(hotel.property.pk, booking.pk, 100_000, "cash")

    with pytest.raises(PaymentNotFound):
        interface.delete_payment(other_hotel.property.pk, receipt.payment.pk)


def test_guest_revenue_excludes_cancelled_bookings(hotel, stay):
    check_in, check_out = stay
    kept = interface.create_booking(hotel.property.pk, hotel.room.pk, hotel.guest.pk, check_in, check_out)
    dropped = interface.create_booking(
        hotel.property.pk, hotel.second_room.pk, hotel.guest.pk, check_in, check_out
    )
    interface.transition_booking(hotel.property.pk, dropped.pk, "cancelled", "Booked twice")

    with tenant_context(hotel.property.pk):
        guest = Guest.objects.get(pk=hotel.guest.pk)
    assert guest.total_revenue == kept.total_amount
    assert guest.visit_count == 0


def test_visit_count_follows_checked_out_bookings(hotel, today):
    for offset in (0, 2):
        booking = interface.create_booking(
            hotel.property.pk,
            hotel.room.pk,
            hotel.guest.pk,
            today - timedelta(days=4 - offset),
            today - timedelta(days=3 - offset),
            source="walk_in",
        )
        interface.transition_booking(hotel.property.pk, booking.pk, "checked_in")
        interface.transition_booking(hotel.property.pk, booking.pk, "checked_out")

    with tenant_context(hotel.property.pk):
        assert Guest.objects.get(pk=hotel.guest.pk).visit_count == 2


def test_recompute_is_idempotent_and_repairs_drift(hotel, booking):
    interface.record_payment(hotel.property.pk, booking.pk, 250_000, "cash")
    with privileged():
        Booking.objects.filter(pk=booking.pk).update(paid_amount=1)
        Guest.objects.filter(pk=hotel.guest.pk).update(total_revenue=7, visit_count=9)

    with tenant_context(hotel.property.pk):
        assert ledger.recompute_booking_paid_amount(booking.pk) == 250_000
        assert ledger.recompute_booking_paid_amount(booking.pk) == 250_000
        first = ledger.recompute_guest_aggregates(hotel.guest.pk)
        assert ledger.recompute_guest_aggregates(hotel.guest.pk) == first
        guest = Guest.objects.get(pk=hotel.guest.pk)

    assert first == ledger.GuestAggregates(total_revenue=booking.total_amount, visit_count=0)
    assert (guest.total_revenue, guest.visit_count) == (booking.total_amount, 0)
    assert _paid_amount(hotel, booking.pk) == 250_000


def test_derived_fields_ignore_direct_writes(hotel, booking):
    with tenant_context(hotel.property.pk):
        loaded = Booking.objects.get(pk=booking.pk)
        loaded.paid_amount = 9_999_999
        loaded.notes = "VIP"
        loaded.save()

        refreshed = Booking.objects.get(pk=booking.pk)
    assert refreshed.paid_amount == 0
    assert refreshed.notes == "VIP"


def test_paid_amount_follows_ledger_entries(hotel, booking):
    interface.record_payment(hotel.property.pk, booking.pk, 30_000, "cash")
    second = interface.record_payment(hotel.property.pk, booking.pk, 20_000, "click")
    assert _paid_amount(hotel, booking.pk) == 50_000

    interface.delete_payment(hotel.property.pk, second.payment.pk)

    assert _paid_amount(hotel, booking.pk) == 30_000


def test_guest_aggregates_count_stays_and_skip_cancellations(hotel, today):
    stayed = interface.create_booking(
        hotel.property.pk,
        hotel.room.pk,
        hotel.guest.pk,
        today - timedelta(days=2),
        today,
        source="walk_in",
        total_amount_override=150_000,
    )
    interface.transition_booking(hotel.property.pk, stayed.pk, "checked_in")
    interface.transition_booking(hotel.property.pk, stayed.pk, "checked_out")
    dropped = interface.create_booking(
        hotel.property.pk,
        hotel.second_room.pk,
        hotel.guest.pk,
        today + timedelta(days=10),
        today + timedelta(days=12),
        total_amount_override=80_000,
    )
    interface.transition_booking(hotel.property.pk, dropped.pk, "cancelled", "Dates moved")

    with tenant_context(hotel.property.pk):
        guest = Guest.objects.get(pk=hotel.guest.pk)
    assert (guest.total_revenue, guest.visit_count) == (150_000, 1)
