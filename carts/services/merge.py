# carts/services/merge.py

"""
CART MERGE SERVICE

Folds an anonymous cart into the user's cart on login.

Rules:
- Absent / expired / empty anonymous cart -> no-op (merged=False).
- Same SellableUnit on both sides -> quantities are summed, capped at
  CART_MAX_LINE_QUANTITY (excess dropped, never an error).
- Otherwise the line is copied with its captured price.
- Transfer + deletion of the anonymous cart happen in ONE transaction, so a
  retry after a failure can never apply the same lines twice.
- The anonymous coupon is carried over only if the user cart has none.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from carts.models import Cart, CartItem
from carts.services.cart_service import max_line_quantity
from carts.services.identity import find_anonymous_cart
from common.exceptions import AuthRequiredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    merged: bool
    merged_line_count: int = 0
    cart: Cart | None = None


def merge_anonymous_cart(token: str | None, user, *, now=None) -> MergeResult:
    if user is None or not getattr(user, "is_authenticated", False):
        raise AuthRequiredError("Sign in to merge your cart")

    with transaction.atomic():
        user_cart, _ = Cart.objects.get_or_create(user=user)
        user_cart = Cart.objects.select_for_update().get(pk=user_cart.pk)

        anon_cart = find_anonymous_cart(token, now=now, for_update=True)
        if anon_cart is None:
            return MergeResult(merged=False, merged_line_count=0, cart=user_cart)

        anon_lines = list(anon_cart.items.all())
        if not anon_lines:
            anon_cart.delete()
            return MergeResult(merged=False, merged_line_count=0, cart=user_cart)

        existing = {line.unit: line for line in user_cart.items.select_for_update()}
        cap = max_line_quantity()
        merged_count = 0

        for anon_line in anon_lines:
            target = existing.get(anon_line.unit)

            if target is not None:
                new_qty = min(target.quantity + anon_line.quantity, cap)
                if new_qty != target.quantity:
                    target.quantity = new_qty
                    target.save(update_fields=["quantity", "updated_at"])
            else:
                CartItem.objects.create(
                    cart=user_cart,
                    product_id=anon_line.product_id,
                    variant_id=anon_line.variant_id,
                    quantity=min(anon_line.quantity, cap),
                    unit_price=anon_line.unit_price,
                    sku=anon_line.sku,
                    title=anon_line.title,
                )
            merged_count += 1

        if user_cart.coupon_id is None and anon_cart.coupon_id is not None:
            user_cart.coupon_id = anon_cart.coupon_id
            user_cart.save(update_fields=["coupon", "updated_at"])

        anon_cart_id = str(anon_cart.id)
        anon_cart.delete()
        user_cart.touch(now)

    logger.info(
        "Merged anonymous cart",
        extra={
            "user_cart_id": str(user_cart.id),
            "anonymous_cart_id": anon_cart_id,
            "merged_lines": merged_count,
        },
    )
    return MergeResult(merged=True, merged_line_count=merged_count, cart=user_cart)
