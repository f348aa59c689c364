# orders/services/checkout_orchestrator.py

"""
CHECKOUT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Turn the caller's cart into an Order (atomic, auditable).
- Reserve stock through the inventory ledger; never oversell.
- Snapshot prices, coupon, address and shipping so the order never
  depends on the live cart or catalog again.

Stages:
    VALIDATING -> RESERVING -> ORDER_CREATED -> AWAITING_PAYMENT | PLACED
    REJECTED (before ORDER_CREATED, nothing was written)

Hard rules:
- Every line is validated and ALL issues are reported, not just the first.
- UNAVAILABLE / INSUFFICIENT_STOCK abort before inventory is touched.
- PRICE_CHANGED aborts unless the caller accepted the new prices, in which
  case lines are re-priced to the current catalog price.
- total = subtotal - discount + shipping_cost + tax
- Reservation, order rows, coupon redemption and cart clearing succeed
  together or roll back together.
- Payment intents and notifications run after commit and never undo an order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from carts.models import Cart
from carts.services import cart_service
from catalog.services.catalog import CatalogService, get_catalog_service
from common.exceptions import (
    AuthRequiredError,
    CheckoutRejectedError,
    NotFoundError,
    PriceChangedError,
    ValidationError,
)
from common.money import ZERO, money
from coupons.services import coupon_engine
from inventory.services import ledger
from orders.models import Address, Order, OrderItem, PaymentAttempt, ShippingMethod
from orders.services.notifications import get_notification_service
from orders.services.payment_methods import get_handler

logger = logging.getLogger(__name__)


class CheckoutStage(str, Enum):
    VALIDATING = "VALIDATING"
    RESERVING = "RESERVING"
    ORDER_CREATED = "ORDER_CREATED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PLACED = "PLACED"
    REJECTED = "REJECTED"


# Issue codes
CART_EMPTY = "CART_EMPTY"
UNAVAILABLE = "UNAVAILABLE"
INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
PRICE_CHANGED = "PRICE_CHANGED"

HARD_ISSUES = {CART_EMPTY, UNAVAILABLE, INSUFFICIENT_STOCK}

ADDRESS_REQUIRED_FIELDS = ("first_name", "last_name", "street", "city", "country")


@dataclass(frozen=True)
class CheckoutRequest:
    payment_method: str
    shipping_method_id: object = None
    address_id: object = None
    address: dict | None = None
    coupon_code: str | None = None
    notes: str = ""
    accept_price_changes: bool = False


@dataclass
class CheckoutValidation:
    issues: list[dict] = field(default_factory=list)
    subtotal: Decimal = ZERO
    item_count: int = 0

    @property
    def hard_issues(self) -> list[dict]:
        return [i for i in self.issues if i["code"] in HARD_ISSUES]

    @property
    def price_changes(self) -> list[dict]:
        return [i for i in self.issues if i["code"] == PRICE_CHANGED]

    @property
    def ok(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    stage: CheckoutStage
    payment: PaymentAttempt | None = None


def _tax_rate() -> Decimal:
    return Decimal(str(getattr(settings, "CHECKOUT_TAX_RATE", "0.10")))


def _currency() -> str:
    return str(getattr(settings, "CHECKOUT_CURRENCY", "USD"))


def _require_user(user):
    if user is None or not getattr(user, "is_authenticated", False):
        raise AuthRequiredError("Please log in to check out")


# ============================================================
# VALIDATION (no writes)
# ============================================================


def _validate_lines(lines, catalog: CatalogService) -> CheckoutValidation:
    result = CheckoutValidation()

    if not lines:
        result.issues.append({"code": CART_EMPTY, "message": "Your cart is empty"})
        return result

    listings = catalog.get_listings([line.unit for line in lines])
    availability = ledger.get_availability_map([line.unit for line in lines])

    for line in lines:
        base = {"line_id": str(line.id), "sku": line.sku, "title": line.title, **line.unit.as_dict()}
        listing = listings.get(line.unit)

        if listing is None or not listing.is_sellable:
            result.issues.append(
                {**base, "code": UNAVAILABLE, "message": f"{line.title} is no longer available"}
            )
            continue

        available = availability.get(line.unit, 0)
        if available < line.quantity:
            result.issues.append(
                {
                    **base,
                    "code": INSUFFICIENT_STOCK,
                    "message": f"Only {max(available, 0)} of {line.title} available",
                    "requested": int(line.quantity),
                    "available": max(int(available), 0),
                }
            )

        if money(line.unit_price) != listing.price:
            result.issues.append(
                {
                    **base,
                    "code": PRICE_CHANGED,
                    "message": f"The price of {line.title} has changed",
                    "old_price": str(money(line.unit_price)),
                    "new_price": str(listing.price),
                }
            )

    result.subtotal = money(sum((line.line_total for line in lines), ZERO))
    result.item_count = sum(int(line.quantity) for line in lines)
    return result


def _cart_lines(cart: Cart | None) -> list:
    if cart is None:
        return []
    return list(cart.items.order_by("created_at", "id"))


def validate_checkout(user, *, catalog: CatalogService | None = None) -> CheckoutValidation:
    """
    Dry run of the VALIDATING stage for the user's cart.
    Never raises for cart problems; the caller gets the full issue list.
    """
    _require_user(user)
    cart = Cart.objects.filter(user=user).first()
    return _validate_lines(_cart_lines(cart), catalog or get_catalog_service())


# ============================================================
# SELECTION SNAPSHOTS
# ============================================================


def get_shipping_method(shipping_method_id) -> ShippingMethod:
    if not shipping_method_id:
        raise ValidationError("Shipping method is required", field="shipping_method_id")

    method = ShippingMethod.objects.filter(pk=shipping_method_id, is_active=True).first()
    if method is None:
        raise NotFoundError("Shipping method not found")
    return method


def _resolve_address(user, request: CheckoutRequest) -> tuple[Address, dict]:
    if request.address_id:
        address = Address.objects.filter(pk=request.address_id, user=user).first()
        if address is None:
            raise NotFoundError("Address not found")
        return address, address.as_snapshot()

    data = request.address or {}
    if not isinstance(data, dict) or not data:
        raise ValidationError("A shipping address is required", field="address")

    for name in ADDRESS_REQUIRED_FIELDS:
        if not str(data.get(name) or "").strip():
            raise ValidationError(f"Address {name} is required", field=f"address.{name}")

    values = {name: str(data.get(name) or "").strip() for name in Address.SNAPSHOT_FIELDS}
    if not values["email"]:
        values["email"] = getattr(user, "email", "") or ""

    address = Address.objects.create(user=user, **values)
    return address, address.as_snapshot()


def _resolve_coupon(cart: Cart, request: CheckoutRequest, subtotal: Decimal, user):
    code = (request.coupon_code or "").strip()
    if code:
        snapshot = coupon_engine.validate(code, subtotal, user=user)
    elif cart.coupon_id is not None:
        snapshot = coupon_engine.validate_coupon(cart.coupon, subtotal, user=user)
    else:
        return None, ZERO
    return snapshot, coupon_engine.compute_discount(snapshot, subtotal)


def allocate_discount(line_totals: list[Decimal], discount: Decimal) -> list[Decimal]:
    """
    Pro-rata split of the order discount across lines by line total.
    The last line takes the rounding remainder so shares always sum to `discount`.
    """
    discount = money(discount)
    if not line_totals:
        return []

    subtotal = sum(line_totals, ZERO)
    if discount <= ZERO or subtotal <= ZERO:
        return [ZERO for _ in line_totals]

    shares = []
    allocated = ZERO
    for total in line_totals[:-1]:
        share = money(discount * total / subtotal)
        shares.append(share)
        allocated += share
    shares.append(money(discount - allocated))
    return shares


# ============================================================
# CHECKOUT
# ============================================================


def checkout(
    user,
    request: CheckoutRequest,
    *,
    catalog: CatalogService | None = None,
    now=None,
) -> CheckoutResult:
    _require_user(user)
    catalog = catalog or get_catalog_service()
    handler = get_handler(request.payment_method)
    shipping_method = get_shipping_method(request.shipping_method_id)
    now = now or timezone.now()

    with transaction.atomic():
        # Lock the cart row: a double-clicked checkout waits here and then finds an empty cart.
        cart = Cart.objects.select_for_update().filter(user=user).first()
        lines = _cart_lines(cart)

        # ---------------- VALIDATING ----------------
        validation = _validate_lines(lines, catalog)

        if validation.hard_issues:
            logger.warning(
                "Checkout rejected",
                extra={"user_id": user.pk, "issues": [i["code"] for i in validation.issues]},
            )
            raise CheckoutRejectedError(issues=validation.issues)

        if validation.price_changes:
            if not request.accept_price_changes:
                logger.warning(
                    "Checkout rejected: price changed",
                    extra={"user_id": user.pk, "lines": len(validation.price_changes)},
                )
                raise PriceChangedError(
                    lines=[
                        {
                            "line_id": i["line_id"],
                            "sku": i["sku"],
                            "old_price": i["old_price"],
                            "new_price": i["new_price"],
                        }
                        for i in validation.price_changes
                    ]
                )
            for line in lines:
                cart_service.refresh_line_price(cart, line.id, catalog=catalog)
            lines = _cart_lines(cart)

        address, address_snapshot = _resolve_address(user, request)

        line_totals = [money(line.line_total) for line in lines]
        subtotal = money(sum(line_totals, ZERO))
        coupon, discount = _resolve_coupon(cart, request, subtotal, user)
        free_shipping = bool(coupon and coupon.free_shipping)

        shipping_cost = ZERO if free_shipping else money(shipping_method.cost)
        tax = money(max(subtotal - discount, ZERO) * _tax_rate())
        total = money(subtotal - discount + shipping_cost + tax)

        # ---------------- RESERVING ----------------
        reservations = ledger.reserve_many([(line.unit, line.quantity) for line in lines])
        by_unit = {r.unit: r for r in reservations}

        # ---------------- ORDER_CREATED ----------------
        order = Order.objects.create(
            user=user,
            status=Order.Status.PENDING_PAYMENT,
            payment_method=handler.method,
            reservation_status=(
                Order.ReservationStatus.HELD
                if any(r.holds_stock for r in reservations)
                else Order.ReservationStatus.NONE
            ),
            address=address,
            shipping_address=address_snapshot,
            shipping_method=shipping_method,
            shipping_method_name=shipping_method.name,
            coupon_code=coupon.code if coupon else "",
            subtotal=subtotal,
            discount=discount,
            shipping_cost=shipping_cost,
            tax=tax,
            total=total,
            currency=_currency(),
            notes=(request.notes or "").strip(),
        )

        shares = allocate_discount(line_totals, discount)
        for line, share in zip(lines, shares):
            reservation = by_unit[line.unit]
            OrderItem.objects.create(
                order=order,
                product_id=line.product_id,
                variant_id=line.variant_id,
                sku=line.sku,
                title=line.title,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_share=share,
                inventory_record_id=reservation.record_id,
                reserved_quantity=reservation.quantity,
            )

        if coupon is not None:
            coupon_engine.redeem(coupon.id, user, order, discount_amount=discount)

        cart_service.clear(cart)

        order = handler.place(order, now=now)

        logger.info(
            "Order created",
            extra={
                "order_no": order.order_no,
                "user_id": user.pk,
                "total": str(order.total),
                "payment_method": order.payment_method,
                "lines": len(lines),
            },
        )

        transaction.on_commit(lambda: handler.after_commit(order))
        transaction.on_commit(lambda: get_notification_service().order_created(order))

    order.refresh_from_db()
    return CheckoutResult(
        order=order,
        stage=CheckoutStage(handler.stage),
        payment=order.payment_attempts.first(),
    )


def summarize(validation: CheckoutValidation) -> dict:
    return {
        "ok": validation.ok,
        "can_proceed": not validation.hard_issues,
        "issues": validation.issues,
        "subtotal": str(validation.subtotal),
        "item_count": validation.item_count,
    }
