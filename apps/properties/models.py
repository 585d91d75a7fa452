"""Property, room inventory and rate models.

A property is the tenant: every other row in the booking core belongs to
exactly one property, directly or through its parent. Money amounts are
integers in the smallest unit of the property's currency.
"""

from __future__ import annotations

from datetime import time

from django.core.exceptions import ValidationError  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import DEFAULT_CURRENCY, SUPPORTED_CURRENCIES
from shared.infrastructure.tenancy import TenantScopedModel


class Property(TenantScopedModel):
    """A hotel, hostel or guesthouse, the unit of tenant isolation."""

    tenant_lookup = "id"

    name = models.CharField(max_length=255)
    currency = models.CharField(
        max_length=3,
        choices=[(code, code) for code in SUPPORTED_CURRENCIES],
        default=DEFAULT_CURRENCY,
    )
    timezone = models.CharField(max_length=50, default="Asia/Tashkent")
    check_in_time = models.TimeField(default=time(14, 0))
    check_out_time = models.TimeField(default=time(12, 0))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Property")
        verbose_name_plural = _("Properties")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Room(TenantScopedModel):
    """A sellable room. Bookings hold the room, never a room type."""

    class RoomType(models.TextChoices):
        SINGLE = "single", _("Single")
        DOUBLE = "double", _("Double")
        FAMILY = "family", _("Family")
        SUITE = "suite", _("Suite")
        DORM = "dorm", _("Dorm")

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        MAINTENANCE = "maintenance", _("Maintenance")
        INACTIVE = "inactive", _("Inactive")

    property = models.ForeignKey(
        Property,
        on_delete=models.PROTECT,
        related_name="rooms",
    )
    name = models.CharField(max_length=100)
    room_type = models.CharField(
        max_length=20,
        choices=RoomType.choices,
        default=RoomType.DOUBLE,
    )
    base_price = models.BigIntegerField(
        validators=[MinValueValidator(0)],
        help_text=_("Fallback nightly price when no rate applies."),
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    capacity_adults = models.PositiveSmallIntegerField(default=2, validators=[MinValueValidator(1)])
    capacity_children = models.PositiveSmallIntegerField(default=0)
    floor = models.SmallIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Room")
        verbose_name_plural = _("Rooms")
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(base_price__gte=0),
                name="room_base_price_non_negative",
            ),
            models.UniqueConstraint(
                fields=["property", "name"],
                name="room_unique_name_per_property",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "status"], name="room_property_status_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    def is_sellable(self) -> bool:
        return self.status == self.Status.ACTIVE


class RoomBlock(TenantScopedModel):
    """Out-of-order period for a room, ``date_to`` exclusive like a booking."""

    tenant_lookup = "room__property_id"

    room = models.ForeignKey(
        Room,
        on_delete=models.CASCADE,
        related_name="blocks",
    )
    date_from = models.DateField()
    date_to = models.DateField()
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Room block")
        verbose_name_plural = _("Room blocks")
        ordering = ["date_from"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(date_to__gt=models.F("date_from")),
                name="room_block_valid_date_range",
            ),
        ]
        indexes = [
            models.Index(fields=["room", "date_from", "date_to"], name="room_block_dates_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.room_id}: {self.date_from} - {self.date_to}"


class Rate(TenantScopedModel):
    """
    Pricing rule evaluated per night by ``apps.bookings.domain.pricing``.

    A rate carries either an absolute ``price`` or a ``discount_percent``
    off the room base price; with both set the discount is used. ``date_from``/``date_to`` are both inclusive.
    ``days_of_week`` uses 0 for Sunday through 6 for Saturday.
    """

    class RateType(models.TextChoices):
        BASE = "base", _("Base")
        SEASONAL = "seasonal", _("Seasonal")
        WEEKEND = "weekend", _("Weekend")
        LONGSTAY = "longstay", _("Long stay")
        SPECIAL = "special", _("Special")

    property = models.ForeignKey(
        Property,
        on_delete=models.PROTECT,
        related_name="rates",
    )
    name = models.CharField(max_length=100)
    type = models.CharField(
        max_length=20,
        choices=RateType.choices,
        default=RateType.BASE,
    )
    price = models.BigIntegerField(null=True, blank=True, validators=[MinValueValidator(0)])
    discount_percent = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    date_from = models.DateField(null=True, blank=True)
    date_to = models.DateField(null=True, blank=True)
    min_stay = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    applies_to_rooms = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Room ids; empty means every room of the property."),
    )
    days_of_week = models.JSONField(
        default=list,
        blank=True,
        help_text=_("0 = Sunday ... 6 = Saturday; empty means every day."),
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Rate")
        verbose_name_plural = _("Rates")
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__isnull=False) | models.Q(discount_percent__isnull=False),
                name="rate_price_or_discount",
            ),
            models.CheckConstraint(
                condition=models.Q(discount_percent__isnull=True) | models.Q(discount_percent__lte=100),
                name="rate_discount_max_100",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(date_from__isnull=True)
                    | models.Q(date_to__isnull=True)
                    | models.Q(date_to__gte=models.F("date_from"))
                ),
                name="rate_valid_date_window",
            ),
        ]
        indexes = [
            models.Index(fields=["property", "is_active"], name="rate_property_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.type})"

    def clean(self):
        super().clean()
        if self.price is None and self.discount_percent is None:
            raise ValidationError(_("Either price or discount_percent is required."))
        if any(day not in range(7) for day in self.days_of_week or []):
            raise ValidationError({"days_of_week": _("Days must be between 0 (Sunday) and 6.")})

    def as_rule(self):
        from apps.bookings.domain.pricing import RateRule

        return RateRule(
            id=self.pk,
            name=self.name,
            type=self.type,
            price=self.price,
            discount_percent=self.discount_percent,
            date_from=self.date_from,
            date_to=self.date_to,
            min_stay=self.min_stay,
            applies_to_rooms=tuple(int(room_id) for room_id in self.applies_to_rooms or ()),
            days_of_week=tuple(int(day) for day in self.days_of_week or ()),
            is_active=self.is_active,
        )
