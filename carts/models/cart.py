"""
PATH: carts/models/cart.py

CART MODEL

Purpose:
- Storefront cart (temporary, mutable).
- Owned by EXACTLY ONE identity:
  - user  (authenticated; one cart per user)
  - token (anonymous bearer credential; whoever presents it owns the cart)

Rules:
- last_activity_at is refreshed on every mutation.
- Anonymous carts expire CART_RETENTION_DAYS after their last activity
  (expires_at); the sweep deletes them.
- Zero or one applied coupon.
"""

import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from coupons.models import Coupon


def retention_window() -> timedelta:
    return timedelta(days=int(getattr(settings, "CART_RETENTION_DAYS", 30)))


class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="cart",
    )

    token = models.CharField(max_length=64, unique=True, null=True, blank=True)

    coupon = models.ForeignKey(
        Coupon,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="carts",
    )

    last_activity_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    (Q(user__isnull=False) & Q(token__isnull=True))
                    | (Q(user__isnull=True) & Q(token__isnull=False))
                ),
                name="cart_owned_by_exactly_one_identity",
            ),
        ]
        indexes = [
            models.Index(fields=["expires_at"], name="carts_cart_expires_idx"),
        ]

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def is_expired(self, now=None) -> bool:
        if not self.is_anonymous or self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())

    def touch(self, now=None, *, save=True):
        """
        Refresh activity (and anonymous expiry). Call on every mutation.
        """
        now = now or timezone.now()
        self.last_activity_at = now
        self.expires_at = now + retention_window() if self.is_anonymous else None
        if save:
            self.save(update_fields=["last_activity_at", "expires_at", "updated_at"])

    @property
    def is_empty(self) -> bool:
        return not self.items.exists()

    def __str__(self):
        owner = f"user={self.user_id}" if self.user_id else "anonymous"
        return f"Cart {self.id} | {owner}"
