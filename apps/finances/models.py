"""Payment ledger model."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.exceptions import ValidationFailed
from shared.infrastructure.tenancy import TenantScopedModel


class Payment(TenantScopedModel):
    """
    One signed ledger entry for a booking.

    Positive amounts are payments, negative amounts are refunds. Entries
    are append-only: corrections are new entries, never edits.
    """

    class Method(models.TextChoices):
        CASH = "cash", _("Cash")
        CARD = "card", _("Card")
        TRANSFER = "transfer", _("Bank transfer")
        PAYME = "payme", _("Payme")
        CLICK = "click", _("Click")
        OTHER = "other", _("Other")

    tenant_lookup = "booking__property_id"

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="payments",
    )
    amount = models.BigIntegerField(help_text=_("Minor units; negative for refunds."))
    method = models.CharField(max_length=20, choices=Method.choices)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    paid_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-paid_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(amount=0),
                name="payment_amount_non_zero",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.amount} via {self.method} for booking {self.booking_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationFailed("Payments are append-only, record a refund instead", payment_id=self.pk)
        super().save(*args, **kwargs)

    def is_refund(self) -> bool:
        return self.amount < 0
