# coupons/models/redemption.py

import uuid

from django.conf import settings
from django.db import models

from .coupon import Coupon


class CouponRedemption(models.Model):
    """
    One row per order that consumed a coupon.
    Source of truth for per-customer usage limits.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    coupon = models.ForeignKey(
        Coupon,
        on_delete=models.PROTECT,
        related_name="redemptions",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="coupon_redemptions",
    )

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="coupon_redemption",
    )

    discount_amount = models.DecimalField(max_digits=10, decimal_places=2)

    redeemed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-redeemed_at"]
        indexes = [
            models.Index(fields=["coupon", "user"], name="coupons_redemption_user_idx"),
        ]

    def __str__(self):
        return f"{self.coupon.code} -> {self.order_id}"
