# catalog/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class Product(models.Model):
    """
    Represents a sellable product.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives in inventory.InventoryRecord (one per product or product+variant)

    PRICE MODEL:
    - base_price is the current selling price
    - variants may override it (ProductVariant.price)
    - carts snapshot the price at add-time; orders snapshot it at checkout
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)
    slug = models.SlugField(max_length=255, blank=True, default="")

    base_price = models.DecimalField(max_digits=10, decimal_places=2)

    is_available = models.BooleanField(default=True)
    is_archived = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["sku"], name="catalog_product_sku_idx"),
            models.Index(fields=["name"], name="catalog_product_name_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        if self.base_price is None or Decimal(self.base_price) <= 0:
            raise ValidationError("Base price must be greater than zero")

    @property
    def is_sellable(self) -> bool:
        return bool(self.is_available) and not self.is_archived
