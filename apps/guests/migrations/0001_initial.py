import django.db.models.deletion
import shared.infrastructure.fields
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("properties", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Guest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("phone", models.CharField(max_length=20)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("document_type", models.CharField(blank=True, max_length=20)),
                (
                    "document_number",
                    shared.infrastructure.fields.EncryptedCharField(
                        blank=True, help_text="Passport or ID number, stored encrypted.", max_length=50
                    ),
                ),
                ("nationality", models.CharField(blank=True, max_length=2)),
                ("is_vip", models.BooleanField(default=False)),
                ("notes", models.TextField(blank=True)),
                ("total_revenue", models.BigIntegerField(default=0, editable=False)),
                ("visit_count", models.PositiveIntegerField(default=0, editable=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="guests",
                        to="properties.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Guest",
                "verbose_name_plural": "Guests",
                "ordering": ["last_name", "first_name"],
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(
                        fields=("property", "phone"),
                        name="guest_unique_phone_per_property",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["property", "last_name", "first_name"], name="guest_property_name_idx"),
                ],
            },
        ),
    ]
