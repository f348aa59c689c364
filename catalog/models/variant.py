# catalog/models/variant.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from .product import Product


class ProductVariant(models.Model):
    """
    A size/color scoped version of a Product.

    Rules:
    - price is optional; NULL means "use product.base_price"
    - sku is optional; a synthetic one is derived for snapshots when empty
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="variants",
    )

    sku = models.CharField(max_length=128, blank=True, default="")
    title = models.CharField(max_length=255, blank=True, default="")
    size = models.CharField(max_length=32, blank=True, default="")
    color = models.CharField(max_length=32, blank=True, default="")

    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def clean(self):
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Variant price must be greater than zero"})

    def __str__(self):
        label = self.title or " / ".join(x for x in (self.size, self.color) if x) or str(self.id)
        return f"{self.product.name} [{label}]"
