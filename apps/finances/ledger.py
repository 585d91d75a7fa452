"""
Financial ledger aggregator.

Derived money fields are always recomputed from scratch:

* ``Booking.paid_amount``  = SUM(payments.amount) of the booking
* ``Guest.total_revenue``  = SUM(total_amount) of the guest's bookings
  that are not cancelled
* ``Guest.visit_count``    = COUNT of the guest's checked-out bookings

Each recompute locks the row it updates first, so two transactions
touching the same booking or guest serialize and the last one to commit
writes the value computed from everything committed before it. The
recompute only ever issues a queryset ``update()`` of the derived
columns, which neither fires signals nor touches other columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from django.db.models import Count, Q, Sum  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.events import PaymentDeleted, PaymentRecorded
from apps.bookings.models import Booking
from apps.guests.models import Guest
from shared.domain.exceptions import (
    BookingNotFound,
    PaymentNotAllowed,
    PaymentNotFound,
    RefundExceedsPaid,
    ValidationFailed,
)
from shared.domain.value_objects import Money
from shared.infrastructure.db import lock_queryset_if_possible

from .models import Payment

logger = structlog.get_logger(__name__)

OVERPAID = "overpaid"

# Affected-entity kinds, recomputed in this order before commit
AFFECTED_BOOKING = "booking"
AFFECTED_GUEST = "guest"

REFUND_ONLY_STATUSES = frozenset({BookingStatus.CANCELLED.value, BookingStatus.NO_SHOW.value})


@dataclass
class PaymentReceipt:
    payment: Payment
    paid_amount: int
    balance: int
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GuestAggregates:
    total_revenue: int
    visit_count: int


def _lock_row(queryset) -> bool:
    """Take the row lock; False when the row no longer exists."""
    return lock_queryset_if_possible(queryset).values_list("pk", flat=True).first() is not None


def sum_payments(booking_id) -> int:
    return Payment.objects.filter(booking_id=booking_id).aggregate(total=Sum("amount", default=0))["total"]


def recompute_booking_paid_amount(booking_id) -> Optional[int]:
    """Rewrite ``paid_amount`` from the payment ledger; None if the booking is gone."""
    booking_qs = Booking.objects.filter(pk=booking_id)
    if not _lock_row(booking_qs):
        return None
    paid_amount = sum_payments(booking_id)
    booking_qs.update(paid_amount=paid_amount)
    logger.debug("booking_paid_amount_recomputed", booking_id=booking_id, paid_amount=paid_amount)
    return paid_amount


def compute_guest_aggregates(guest_id) -> GuestAggregates:
    values = Booking.objects.filter(guest_id=guest_id).aggregate(
        total_revenue=Sum(
            "total_amount",
            filter=~Q(status=BookingStatus.CANCELLED.value),
            default=0,
        ),
        visit_count=Count("id", filter=Q(status=BookingStatus.CHECKED_OUT.value)),
    )
    return GuestAggregates(total_revenue=values["total_revenue"], visit_count=values["visit_count"])


def recompute_guest_aggregates(guest_id) -> Optional[GuestAggregates]:
    """Rewrite ``total_revenue``/``visit_count`` from the guest's bookings."""
    guest_qs = Guest.objects.filter(pk=guest_id)
    if not _lock_row(guest_qs):
        return None
    aggregates = compute_guest_aggregates(guest_id)
    guest_qs.update(total_revenue=aggregates.total_revenue, visit_count=aggregates.visit_count)
    logger.debug(
        "guest_aggregates_recomputed",
        guest_id=guest_id,
        total_revenue=aggregates.total_revenue,
        visit_count=aggregates.visit_count,
    )
    return aggregates


def _locked_booking(uow, booking_id) -> Booking:
    booking = lock_queryset_if_possible(uow.bookings.filter(pk=booking_id)).first()
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def record_payment(uow, booking_id, amount, method, reference=None, notes=None, paid_at=None) -> PaymentReceipt:
    """
    Append a payment (positive) or refund (negative) to a booking.

    Overpayment is accepted and reported through ``warnings``. A refund
    larger than what was paid raises ``RefundExceedsPaid``.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationFailed("Payment amount must be an integer of minor units", amount=amount)
    if amount == 0:
        raise ValidationFailed("Payment amount cannot be zero", amount=amount)
    if method not in Payment.Method.values:
        raise ValidationFailed(f"Unknown payment method '{method}'", method=method)

    booking = _locked_booking(uow, booking_id)
    if booking.status in REFUND_ONLY_STATUSES and amount > 0:
        raise PaymentNotAllowed(
            f"Only refunds can be recorded for a {booking.status} booking",
            booking_id=booking.pk,
            status=booking.status,
        )

    paid_before = sum_payments(booking.pk)
    paid_after = paid_before + amount
    if paid_after < 0:
        raise RefundExceedsPaid(paid_amount=paid_before, requested=amount)

    payment = Payment.objects.create(
        booking=booking,
        amount=amount,
        method=method,
        reference=reference or "",
        notes=notes or "",
        paid_at=paid_at or timezone.now(),
    )

    warnings = []
    if paid_after > booking.total_amount:
        warnings.append(OVERPAID)
        logger.warning(
            "booking_overpaid",
            booking_id=booking.pk,
            total_amount=booking.total_amount,
            paid_amount=paid_after,
        )

    currency = booking.property.currency
    uow.add_event(PaymentRecorded(
        property_id=booking.property_id,
        aggregate_id=booking.pk,
        payment_id=payment.pk,
        amount=Money(amount, currency),
        paid_amount=Money(paid_after, currency),
    ))
    logger.info("payment_recorded", booking_id=booking.pk, payment_id=payment.pk, amount=amount)

    return PaymentReceipt(
        payment=payment,
        paid_amount=paid_after,
        balance=booking.total_amount - paid_after,
        warnings=warnings,
    )


def delete_payment(uow, payment_id) -> int:
    """Remove a ledger entry and return the booking's resulting paid amount."""
    payment = uow.payments.filter(pk=payment_id).first()
    if payment is None:
        raise PaymentNotFound(payment_id)

    booking = _locked_booking(uow, payment.booking_id)
    paid_before = sum_payments(booking.pk)
    paid_after = paid_before - payment.amount
    if paid_after < 0:
        raise RefundExceedsPaid(
            paid_before,
            -payment.amount,
            "Removing this payment would make the paid amount negative",
        )

    amount = payment.amount
    payment.delete()

    uow.add_event(PaymentDeleted(
        property_id=booking.property_id,
        aggregate_id=booking.pk,
        payment_id=payment_id,
        amount=Money(amount, booking.property.currency),
    ))
    logger.info("payment_deleted", booking_id=booking.pk, payment_id=payment_id, amount=amount)
    return paid_after
