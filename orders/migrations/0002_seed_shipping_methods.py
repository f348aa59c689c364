"""
MIGRATION: SEED SHIPPING METHODS

Idempotent: existing codes are left untouched.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import migrations

SHIPPING_METHODS = [
    {
        "code": "standard",
        "name": "Standard Shipping",
        "description": "Delivered in 5-7 business days",
        "cost": Decimal("0.00"),
        "estimated_days": "5-7",
        "sort_order": 1,
    },
    {
        "code": "express",
        "name": "Express Shipping",
        "description": "Delivered in 2-3 business days",
        "cost": Decimal("15.00"),
        "estimated_days": "2-3",
        "sort_order": 2,
    },
    {
        "code": "overnight",
        "name": "Overnight Shipping",
        "description": "Delivered the next business day",
        "cost": Decimal("30.00"),
        "estimated_days": "1",
        "sort_order": 3,
    },
]


def seed_shipping_methods(apps, schema_editor):
    ShippingMethod = apps.get_model("orders", "ShippingMethod")
    for row in SHIPPING_METHODS:
        ShippingMethod.objects.get_or_create(code=row["code"], defaults=row)


def unseed_shipping_methods(apps, schema_editor):
    ShippingMethod = apps.get_model("orders", "ShippingMethod")
    ShippingMethod.objects.filter(
        code__in=[row["code"] for row in SHIPPING_METHODS],
        orders__isnull=True,
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_shipping_methods, unseed_shipping_methods),
    ]
