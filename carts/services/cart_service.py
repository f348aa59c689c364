# carts/services/cart_service.py

"""
CART AGGREGATE (APPLICATION SERVICE)

Purpose:
- Mutate one cart's lines with server-owned pricing.
- Compute totals (subtotal, coupon discount, total).

Hard rules:
- Quantities are whole integers in [1, CART_MAX_LINE_QUANTITY]; the cap applies
  to the RESULTING line quantity.
- unit_price is captured from the catalog at add time. Adding to an existing
  line refreshes it to the current catalog price.
- Every mutation refreshes the cart's activity timestamp.
- clear() removes lines AND the coupon in one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from carts.models import Cart, CartItem
from catalog.services.catalog import CatalogService, get_catalog_service
from catalog.units import SellableUnit
from common.exceptions import InvalidCouponError, NotFoundError, ValidationError
from common.money import ZERO, money, to_int_qty
from coupons.services import coupon_engine
from coupons.services.coupon_engine import CouponSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    coupon: CouponSnapshot | None = None
    free_shipping: bool = False
    item_count: int = 0
    coupon_issue: dict | None = field(default=None)


def max_line_quantity() -> int:
    return int(getattr(settings, "CART_MAX_LINE_QUANTITY", 99))


def validate_quantity(qty) -> int:
    try:
        q = to_int_qty(qty)
    except ValueError as exc:
        raise ValidationError("Quantity must be a whole number", field="quantity") from exc

    if q <= 0:
        raise ValidationError("Quantity must be greater than 0", field="quantity")

    cap = max_line_quantity()
    if q > cap:
        raise ValidationError(f"Maximum quantity is {cap}", field="quantity")
    return q


def _line_filter(unit: SellableUnit) -> dict:
    if unit.variant_id is None:
        return {"product_id": unit.product_id, "variant__isnull": True}
    return {"product_id": unit.product_id, "variant_id": unit.variant_id}


def get_line(cart: Cart, line_id, *, for_update=False) -> CartItem:
    qs = CartItem.objects.filter(cart=cart, id=line_id)
    if for_update:
        qs = qs.select_for_update()
    line = qs.first()
    if line is None:
        raise NotFoundError(f"CartItem {line_id} not found")
    return line


# ============================================================
# LINE MUTATIONS
# ============================================================


@transaction.atomic
def add_line(cart: Cart, unit: SellableUnit, qty, *, catalog: CatalogService | None = None) -> CartItem:
    qty = validate_quantity(qty)
    catalog = catalog or get_catalog_service()

    listing = catalog.get_listing(unit)
    if not listing.is_sellable:
        raise ValidationError(f"{listing.title} is currently unavailable", field="product_id")

    line = CartItem.objects.select_for_update().filter(cart=cart, **_line_filter(unit)).first()

    if line is not None:
        new_qty = line.quantity + qty
        if new_qty > max_line_quantity():
            raise ValidationError(f"Maximum quantity is {max_line_quantity()}", field="quantity")
        line.quantity = new_qty
        line.unit_price = listing.price
        line.sku = listing.sku
        line.title = listing.title
        line.save(update_fields=["quantity", "unit_price", "sku", "title", "updated_at"])
    else:
        line = CartItem.objects.create(
            cart=cart,
            product_id=unit.product_id,
            variant_id=unit.variant_id,
            quantity=qty,
            unit_price=listing.price,
            sku=listing.sku,
            title=listing.title,
        )

    cart.touch()
    logger.info(
        "Cart line added",
        extra={"cart_id": str(cart.id), "unit": str(unit), "quantity": line.quantity},
    )
    return line


@transaction.atomic
def update_quantity(cart: Cart, line_id, qty) -> CartItem:
    qty = validate_quantity(qty)
    line = get_line(cart, line_id, for_update=True)

    line.quantity = qty
    line.save(update_fields=["quantity", "updated_at"])
    cart.touch()
    return line


@transaction.atomic
def remove_line(cart: Cart, line_id) -> None:
    line = get_line(cart, line_id, for_update=True)
    line.delete()
    cart.touch()


@transaction.atomic
def clear(cart: Cart) -> None:
    CartItem.objects.filter(cart=cart).delete()
    cart.coupon = None
    cart.touch(save=False)
    cart.save(update_fields=["coupon", "last_activity_at", "expires_at", "updated_at"])


@transaction.atomic
def refresh_line_price(cart: Cart, line_id, *, catalog: CatalogService | None = None) -> CartItem:
    """
    Re-capture the current catalog price for one line (price drift acknowledgement).
    """
    catalog = catalog or get_catalog_service()
    line = get_line(cart, line_id, for_update=True)

    listing = catalog.get_listing(line.unit)
    if line.unit_price != listing.price:
        logger.info(
            "Cart line price refreshed",
            extra={
                "cart_id": str(cart.id),
                "line_id": str(line.id),
                "old_price": str(line.unit_price),
                "new_price": str(listing.price),
            },
        )
    line.unit_price = listing.price
    line.sku = listing.sku
    line.title = listing.title
    line.save(update_fields=["unit_price", "sku", "title", "updated_at"])
    cart.touch()
    return line


# ============================================================
# COUPON
# ============================================================


def subtotal_of(cart: Cart) -> Decimal:
    return money(sum((line.line_total for line in cart.items.all()), ZERO))


@transaction.atomic
def apply_coupon(cart: Cart, code: str, user=None) -> CouponSnapshot:
    snapshot = coupon_engine.validate(code, subtotal_of(cart), user=user)
    cart.coupon_id = snapshot.id
    cart.touch(save=False)
    cart.save(update_fields=["coupon", "last_activity_at", "expires_at", "updated_at"])
    logger.info("Coupon applied", extra={"cart_id": str(cart.id), "code": snapshot.code})
    return snapshot


@transaction.atomic
def remove_coupon(cart: Cart) -> None:
    cart.coupon = None
    cart.touch(save=False)
    cart.save(update_fields=["coupon", "last_activity_at", "expires_at", "updated_at"])


# ============================================================
# TOTALS
# ============================================================


def compute_totals(cart: Cart, user=None) -> CartTotals:
    """
    subtotal = sum(line_total); discount from the applied coupon (if it is still
    valid for this subtotal); total = max(0, subtotal - discount).

    A coupon that no longer validates (e.g. subtotal fell below its minimum)
    contributes no discount and is reported in coupon_issue.
    """
    lines = list(cart.items.all())
    subtotal = money(sum((line.line_total for line in lines), ZERO))
    item_count = sum(int(line.quantity) for line in lines)

    snapshot = None
    coupon_issue = None
    discount = ZERO

    if cart.coupon_id is not None:
        try:
            snapshot = coupon_engine.validate_coupon(cart.coupon, subtotal, user=user)
            discount = coupon_engine.compute_discount(snapshot, subtotal)
        except InvalidCouponError as exc:
            coupon_issue = {"code": cart.coupon.code, "reason": exc.reason, "message": exc.message}

    total = money(max(subtotal - discount, ZERO))

    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        total=total,
        coupon=snapshot,
        free_shipping=bool(snapshot and snapshot.free_shipping),
        item_count=item_count,
        coupon_issue=coupon_issue,
    )
