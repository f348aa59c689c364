# coupons/models/coupon.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Coupon(models.Model):
    """
    Global discount rule.

    Rules:
    - code is stored upper-case and matched case-insensitively
    - PERCENTAGE value is 0-100; FIXED value is a currency amount
    - FREE_SHIPPING contributes 0 to the item discount (shipping is waived at checkout)
    - used_count is only ever incremented by coupons.services.coupon_engine.redeem
    """

    class Type(models.TextChoices):
        PERCENTAGE = "PERCENTAGE", "Percentage"
        FIXED = "FIXED", "Fixed amount"
        FREE_SHIPPING = "FREE_SHIPPING", "Free shipping"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=64, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")

    type = models.CharField(max_length=16, choices=Type.choices)
    value = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    max_discount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    min_order_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    per_customer_limit = models.PositiveIntegerField(null=True, blank=True)

    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(used_count__lte=models.F("usage_limit")),
                name="coupon_used_within_limit",
            ),
        ]

    def clean(self):
        if self.value is None or self.value < 0:
            raise ValidationError({"value": "Value cannot be negative"})
        if self.type == self.Type.PERCENTAGE and self.value > 100:
            raise ValidationError({"value": "Percentage cannot exceed 100"})
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValidationError({"ends_at": "ends_at must be after starts_at"})

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} ({self.type} {self.value})"
