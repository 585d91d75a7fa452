"""Guest profiles."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import DerivedFieldsMixin, EncryptedCharField
from shared.infrastructure.tenancy import TenantScopedModel


class Guest(DerivedFieldsMixin, TenantScopedModel):
    """
    A guest of one property.

    ``total_revenue`` is the sum of ``total_amount`` over the guest's
    bookings that are not cancelled, ``visit_count`` the number of
    checked-out bookings. Both are maintained by
    ``apps.finances.ledger`` and cannot be written directly.
    """

    derived_fields = ("total_revenue", "visit_count")

    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.PROTECT,
        related_name="guests",
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20)
    email = models.EmailField(blank=True)
    document_type = models.CharField(max_length=20, blank=True)
    document_number = EncryptedCharField(
        max_length=50,
        blank=True,
        help_text=_("Passport or ID number, stored encrypted."),
    )
    nationality = models.CharField(max_length=2, blank=True)
    is_vip = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    total_revenue = models.BigIntegerField(default=0, editable=False)
    visit_count = models.PositiveIntegerField(default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Guest")
        verbose_name_plural = _("Guests")
        ordering = ["last_name", "first_name"]
        constraints = [
            models.UniqueConstraint(
                fields=["property", "phone"],
                name="guest_unique_phone_per_property",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "last_name", "first_name"], name="guest_property_name_idx"),
        ]

    def __str__(self) -> str:
        return self.get_full_name()

    def get_full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
