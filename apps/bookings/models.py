"""Booking and booking history models."""

from __future__ import annotations

from django.core.serializers.json import DjangoJSONEncoder  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import DerivedFieldsMixin, TrackedFieldsMixin
from shared.infrastructure.tenancy import TenantScopedModel

from .domain.entities import BookingStatus


class Booking(TrackedFieldsMixin, DerivedFieldsMixin, TenantScopedModel):
    """
    A stay of one guest in one room for ``[check_in, check_out)``.

    ``total_amount`` is fixed when the booking is created or modified.
    ``paid_amount`` is derived from the payment ledger and only ever
    written by ``apps.finances.ledger``.
    """

    Status = BookingStatus

    class Source(models.TextChoices):
        DIRECT = "direct", _("Direct")
        PHONE = "phone", _("Phone")
        WALK_IN = "walk_in", _("Walk-in")
        WEBSITE = "website", _("Website")
        BOOKING_COM = "booking_com", _("Booking.com")
        AIRBNB = "airbnb", _("Airbnb")
        EXPEDIA = "expedia", _("Expedia")
        OTHER = "other", _("Other")

    derived_fields = ("paid_amount",)
    tracked_fields = ("guest_id", "status", "total_amount")

    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    room = models.ForeignKey(
        "properties.Room",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    guest = models.ForeignKey(
        "guests.Guest",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    rate = models.ForeignKey(
        "properties.Rate",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
        help_text=_("Rate explicitly chosen for the whole stay, if any."),
    )
    booking_number = models.CharField(max_length=20, editable=False)
    check_in = models.DateField()
    check_out = models.DateField()
    nights = models.PositiveSmallIntegerField(default=1)
    adults = models.PositiveSmallIntegerField(default=1)
    children = models.PositiveSmallIntegerField(default=0)
    total_amount = models.BigIntegerField(default=0)
    paid_amount = models.BigIntegerField(default=0, editable=False)
    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices(),
        default=BookingStatus.NEW.value,
    )
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.DIRECT,
    )
    source_reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_valid_dates",
            ),
            models.CheckConstraint(
                condition=models.Q(adults__gte=1),
                name="booking_min_one_adult",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="booking_total_non_negative",
            ),
            models.UniqueConstraint(
                fields=["property", "booking_number"],
                name="booking_number_unique_per_property",
            ),
        ]
        indexes = [
            models.Index(fields=["room", "check_in", "check_out"], name="booking_room_dates_idx"),
            models.Index(fields=["property", "status"], name="booking_property_status_idx"),
            models.Index(fields=["property", "check_in"], name="booking_property_checkin_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.booking_number} ({self.status})"

    def save(self, *args, **kwargs):
        if self.check_in and self.check_out:
            self.nights = (self.check_out - self.check_in).days
        super().save(*args, **kwargs)

    def get_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    def get_balance(self) -> int:
        return self.total_amount - self.paid_amount


class BookingHistory(TenantScopedModel):
    """Audit trail of booking changes, written in the same transaction."""

    class Action(models.TextChoices):
        CREATED = "created", _("Created")
        UPDATED = "updated", _("Updated")
        STATUS_CHANGED = "status_changed", _("Status changed")
        CANCELLED = "cancelled", _("Cancelled")

    tenant_lookup = "booking__property_id"

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name="history",
    )
    action = models.CharField(max_length=30, choices=Action.choices)
    old_value = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_value = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Booking history entry")
        verbose_name_plural = _("Booking history")
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.action}"
