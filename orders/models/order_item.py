# orders/models/order_item.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from catalog.models import Product, ProductVariant
from catalog.units import SellableUnit
from inventory.models import InventoryRecord


class OrderItem(models.Model):
    """
    Immutable line snapshot.

    - line_total = unit_price * quantity (before the order-level discount)
    - discount_share is this line's pro-rata part of Order.discount
    - inventory_record + reserved_quantity trace the hold taken at checkout
      (reserved_quantity is 0 for untracked units)
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order_items",
    )

    sku = models.CharField(max_length=128)
    title = models.CharField(max_length=255)

    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    discount_share = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="quantity * unit_price (server computed)",
    )

    inventory_record = models.ForeignKey(
        InventoryRecord,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    reserved_quantity = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    @property
    def unit(self) -> SellableUnit:
        return SellableUnit(product_id=self.product_id, variant_id=self.variant_id)

    def clean(self):
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError("quantity must be >= 1")

        if self.unit_price is None or Decimal(self.unit_price) <= Decimal("0.00"):
            raise ValidationError("unit_price must be > 0")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Order items are immutable once created")
        if self.quantity and self.unit_price is not None:
            self.line_total = (Decimal(self.quantity) * Decimal(self.unit_price)).quantize(
                Decimal("0.01")
            )
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.sku} x{self.quantity}"
