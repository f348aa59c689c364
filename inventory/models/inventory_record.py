# inventory/models/inventory_record.py

"""
INVENTORY RECORD

One row per SellableUnit (product, or product+variant).

Rules (DB-enforced):
- quantity >= 0
- 0 <= reserved <= quantity
- exactly one record per (product, variant) including the NULL-variant unit

Write path:
- Only inventory.services.ledger mutates quantity/reserved,
  and only through single conditional UPDATE statements.
"""

import uuid

from django.db import models
from django.db.models import F, Q

from catalog.models import Product, ProductVariant
from catalog.units import SellableUnit


class InventoryRecord(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="inventory_records",
    )

    variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="inventory_records",
    )

    quantity = models.IntegerField(default=0, help_text="On-hand units")
    reserved = models.IntegerField(default=0, help_text="Units soft-held by in-flight orders")

    is_tracked = models.BooleanField(
        default=True,
        help_text="Untracked units are always available and never reserved",
    )
    reorder_threshold = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["product_id", "variant_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product"],
                condition=Q(variant__isnull=True),
                name="one_inventory_record_per_product",
            ),
            models.UniqueConstraint(
                fields=["product", "variant"],
                condition=Q(variant__isnull=False),
                name="one_inventory_record_per_variant",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name="inventory_quantity_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(reserved__gte=0) & Q(reserved__lte=F("quantity")),
                name="inventory_reserved_within_quantity",
            ),
        ]

    @property
    def available(self) -> int:
        return max(int(self.quantity) - int(self.reserved), 0)

    @property
    def needs_reorder(self) -> bool:
        return self.is_tracked and self.available <= int(self.reorder_threshold or 0)

    @property
    def unit(self) -> SellableUnit:
        return SellableUnit(product_id=self.product_id, variant_id=self.variant_id)

    def __str__(self):
        return f"{self.unit} | on_hand={self.quantity} reserved={self.reserved}"
