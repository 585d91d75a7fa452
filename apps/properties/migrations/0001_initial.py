import datetime

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Property",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD"), ("EUR", "EUR"), ("RUB", "RUB"), ("KZT", "KZT")],
                        default="UZS",
                        max_length=3,
                    ),
                ),
                ("timezone", models.CharField(default="Asia/Tashkent", max_length=50)),
                ("check_in_time", models.TimeField(default=datetime.time(14, 0))),
                ("check_out_time", models.TimeField(default=datetime.time(12, 0))),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Property",
                "verbose_name_plural": "Properties",
                "ordering": ["name"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                (
                    "room_type",
                    models.CharField(
                        choices=[
                            ("single", "Single"),
                            ("double", "Double"),
                            ("family", "Family"),
                            ("suite", "Suite"),
                            ("dorm", "Dorm"),
                        ],
                        default="double",
                        max_length=20,
                    ),
                ),
                (
                    "base_price",
                    models.BigIntegerField(
                        help_text="Fallback nightly price when no rate applies.",
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("maintenance", "Maintenance"), ("inactive", "Inactive")],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "capacity_adults",
                    models.PositiveSmallIntegerField(
                        default=2, validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("capacity_children", models.PositiveSmallIntegerField(default=0)),
                ("floor", models.SmallIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rooms",
                        to="properties.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Room",
                "verbose_name_plural": "Rooms",
                "ordering": ["name"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(base_price__gte=0),
                        name="room_base_price_non_negative",
                    ),
                    models.UniqueConstraint(
                        fields=("property", "name"),
                        name="room_unique_name_per_property",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["property", "status"], name="room_property_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RoomBlock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date_from", models.DateField()),
                ("date_to", models.DateField()),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks",
                        to="properties.room",
                    ),
                ),
            ],
            options={
                "verbose_name": "Room block",
                "verbose_name_plural": "Room blocks",
                "ordering": ["date_from"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(date_to__gt=models.F("date_from")),
                        name="room_block_valid_date_range",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["room", "date_from", "date_to"], name="room_block_dates_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Rate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("base", "Base"),
                            ("seasonal", "Seasonal"),
                            ("weekend", "Weekend"),
                            ("longstay", "Long stay"),
                            ("special", "Special"),
                        ],
                        default="base",
                        max_length=20,
                    ),
                ),
                (
                    "price",
                    models.BigIntegerField(
                        blank=True, null=True, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                (
                    "discount_percent",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                ("date_from", models.DateField(blank=True, null=True)),
                ("date_to", models.DateField(blank=True, null=True)),
                (
                    "min_stay",
                    models.PositiveSmallIntegerField(
                        default=1, validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                (
                    "applies_to_rooms",
                    models.JSONField(blank=True, default=list, help_text="Room ids; empty means every room of the property."),
                ),
                (
                    "days_of_week",
                    models.JSONField(blank=True, default=list, help_text="0 = Sunday ... 6 = Saturday; empty means every day."),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rates",
                        to="properties.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Rate",
                "verbose_name_plural": "Rates",
                "ordering": ["id"],
                "abstract": False,
                "constraints": [
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
                ],
                "indexes": [
                    models.Index(fields=["property", "is_active"], name="rate_property_active_idx"),
                ],
            },
        ),
    ]
