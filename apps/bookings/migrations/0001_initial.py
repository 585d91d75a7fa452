import django.core.serializers.json
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("properties", "0001_initial"),
        ("guests", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_number", models.CharField(editable=False, max_length=20)),
                ("check_in", models.DateField()),
                ("check_out", models.DateField()),
                ("nights", models.PositiveSmallIntegerField(default=1)),
                ("adults", models.PositiveSmallIntegerField(default=1)),
                ("children", models.PositiveSmallIntegerField(default=0)),
                ("total_amount", models.BigIntegerField(default=0)),
                ("paid_amount", models.BigIntegerField(default=0, editable=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("new", "New"),
                            ("confirmed", "Confirmed"),
                            ("checked_in", "Checked in"),
                            ("checked_out", "Checked out"),
                            ("cancelled", "Cancelled"),
                            ("no_show", "No show"),
                        ],
                        default="new",
                        max_length=20,
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("direct", "Direct"),
                            ("phone", "Phone"),
                            ("walk_in", "Walk-in"),
                            ("website", "Website"),
                            ("booking_com", "Booking.com"),
                            ("airbnb", "Airbnb"),
                            ("expedia", "Expedia"),
                            ("other", "Other"),
                        ],
                        default="direct",
                        max_length=20,
                    ),
                ),
                ("source_reference", models.CharField(blank=True, max_length=100)),
                ("notes", models.TextField(blank=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "guest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="guests.guest",
                    ),
                ),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="properties.property",
                    ),
                ),
                (
                    "rate",
                    models.ForeignKey(
                        blank=True,
                        help_text="Rate explicitly chosen for the whole stay, if any.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="bookings",
                        to="properties.rate",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="properties.room",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at", "-id"],
                "abstract": False,
                "constraints": [
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
                        fields=("property", "booking_number"),
                        name="booking_number_unique_per_property",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["room", "check_in", "check_out"], name="booking_room_dates_idx"),
                    models.Index(fields=["property", "status"], name="booking_property_status_idx"),
                    models.Index(fields=["property", "check_in"], name="booking_property_checkin_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BookingHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("updated", "Updated"),
                            ("status_changed", "Status changed"),
                            ("cancelled", "Cancelled"),
                        ],
                        max_length=30,
                    ),
                ),
                (
                    "old_value",
                    models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True),
                ),
                (
                    "new_value",
                    models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking history entry",
                "verbose_name_plural": "Booking history",
                "ordering": ["created_at", "id"],
                "abstract": False,
            },
        ),
    ]
