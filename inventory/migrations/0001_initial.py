from __future__ import annotations

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="InventoryRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("quantity", models.IntegerField(default=0, help_text="On-hand units")),
                (
                    "reserved",
                    models.IntegerField(
                        default=0, help_text="Units soft-held by in-flight orders"
                    ),
                ),
                (
                    "is_tracked",
                    models.BooleanField(
                        default=True,
                        help_text="Untracked units are always available and never reserved",
                    ),
                ),
                ("reorder_threshold", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inventory_records",
                        to="catalog.product",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inventory_records",
                        to="catalog.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["product_id", "variant_id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("variant__isnull", True)),
                        fields=("product",),
                        name="one_inventory_record_per_product",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("variant__isnull", False)),
                        fields=("product", "variant"),
                        name="one_inventory_record_per_variant",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 0)),
                        name="inventory_quantity_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("reserved__gte", 0),
                            ("reserved__lte", models.F("quantity")),
                        ),
                        name="inventory_reserved_within_quantity",
                    ),
                ],
            },
        ),
    ]
