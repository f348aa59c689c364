# orders/models/shipping_method.py

import uuid
from decimal import Decimal

from django.db import models


class ShippingMethod(models.Model):
    """
    Selectable delivery option. Seeded by migration 0002.
    Orders snapshot name + cost; editing a method never changes past orders.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.SlugField(max_length=32, unique=True)
    name = models.CharField(max_length=120)
    description = models.CharField(max_length=255, blank=True, default="")

    cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    estimated_days = models.CharField(max_length=32, blank=True, default="")

    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self):
        return f"{self.name} ({self.cost})"
