# coupons/services/coupon_engine.py

"""
COUPON ENGINE

Purpose:
- Validate a code against its rules and produce an immutable snapshot.
- Compute the item discount for a subtotal.
- Record a redemption (usage counter + per-customer history) when an order is placed.

Validation order (short-circuits on the first failure):
    exists -> active -> started -> not expired -> minimum order
           -> global usage limit -> per-customer limit

Discount rules:
- PERCENTAGE:    subtotal * value / 100, capped at max_discount
- FIXED:         min(value, subtotal)  (never a negative total)
- FREE_SHIPPING: 0 here; the shipping waiver is applied at checkout
- Rounded half-up to 2dp once, at computation time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db.models import F, Q
from django.utils import timezone

from common.exceptions import InvalidCouponError
from common.money import ZERO, money
from coupons.models import Coupon, CouponRedemption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponSnapshot:
    id: object
    code: str
    type: str
    value: Decimal
    max_discount: Decimal | None = None
    min_order_amount: Decimal | None = None

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "CouponSnapshot":
        return cls(
            id=coupon.id,
            code=coupon.code,
            type=coupon.type,
            value=money(coupon.value),
            max_discount=money(coupon.max_discount) if coupon.max_discount is not None else None,
            min_order_amount=(
                money(coupon.min_order_amount) if coupon.min_order_amount is not None else None
            ),
        )

    @property
    def free_shipping(self) -> bool:
        return self.type == Coupon.Type.FREE_SHIPPING

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "type": self.type,
            "value": str(self.value),
            "max_discount": str(self.max_discount) if self.max_discount is not None else None,
        }


def get_coupon(code: str) -> Coupon | None:
    code = (code or "").strip()
    if not code:
        return None
    return Coupon.objects.filter(code__iexact=code).first()


def _customer_redemptions(coupon_id, user) -> int:
    return CouponRedemption.objects.filter(coupon_id=coupon_id, user=user).count()


def _check_rules(coupon: Coupon | None, *, code: str, subtotal: Decimal, user=None, now=None):
    now = now or timezone.now()

    if coupon is None:
        raise InvalidCouponError(
            InvalidCouponError.NOT_FOUND,
            f'Coupon code "{(code or "").strip().upper()}" not found',
        )

    if not coupon.is_active:
        raise InvalidCouponError(InvalidCouponError.INACTIVE, "This coupon is no longer active")

    if coupon.starts_at and coupon.starts_at > now:
        raise InvalidCouponError(InvalidCouponError.NOT_STARTED, "This coupon is not yet valid")

    if coupon.ends_at and coupon.ends_at < now:
        raise InvalidCouponError(InvalidCouponError.EXPIRED, "This coupon has expired")

    if coupon.min_order_amount is not None and subtotal < money(coupon.min_order_amount):
        raise InvalidCouponError(
            InvalidCouponError.BELOW_MINIMUM,
            f"Minimum order amount of {money(coupon.min_order_amount)} required",
        )

    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise InvalidCouponError(
            InvalidCouponError.USAGE_EXHAUSTED,
            "This coupon has reached its usage limit",
        )

    if (
        coupon.per_customer_limit is not None
        and user is not None
        and getattr(user, "is_authenticated", False)
        and _customer_redemptions(coupon.id, user) >= coupon.per_customer_limit
    ):
        raise InvalidCouponError(
            InvalidCouponError.CUSTOMER_LIMIT_REACHED,
            "You have already used this coupon the maximum number of times",
        )


def validate(code: str, subtotal, user=None, *, now=None) -> CouponSnapshot:
    subtotal = money(subtotal)
    coupon = get_coupon(code)
    _check_rules(coupon, code=code, subtotal=subtotal, user=user, now=now)
    return CouponSnapshot.from_coupon(coupon)


def validate_coupon(coupon: Coupon, subtotal, user=None, *, now=None) -> CouponSnapshot:
    """
    Re-validation of an already applied coupon (cart totals, checkout).
    """
    subtotal = money(subtotal)
    coupon.refresh_from_db()
    _check_rules(coupon, code=coupon.code, subtotal=subtotal, user=user, now=now)
    return CouponSnapshot.from_coupon(coupon)


def compute_discount(coupon, subtotal) -> Decimal:
    """
    coupon: Coupon or CouponSnapshot (anything with type/value/max_discount).
    Pure function.
    """
    subtotal = money(subtotal)
    if subtotal <= ZERO:
        return ZERO

    value = Decimal(str(coupon.value or 0))

    if coupon.type == Coupon.Type.PERCENTAGE:
        discount = subtotal * value / Decimal("100")
        if coupon.max_discount is not None:
            discount = min(discount, Decimal(str(coupon.max_discount)))
    elif coupon.type == Coupon.Type.FIXED:
        discount = min(value, subtotal)
    else:
        discount = ZERO

    return money(max(min(discount, subtotal), ZERO))


def redeem(coupon, user, order, *, discount_amount=ZERO) -> CouponRedemption:
    """
    Consume one use of `coupon` for `order`.

    The usage counter is bumped by a single conditional UPDATE
    (used_count < usage_limit), so two concurrent checkouts cannot both take
    the last use. Must run inside the checkout transaction.
    """
    coupon_id = getattr(coupon, "id", coupon)

    per_customer = (
        Coupon.objects.filter(pk=coupon_id).values_list("per_customer_limit", flat=True).first()
    )
    if (
        per_customer is not None
        and user is not None
        and getattr(user, "is_authenticated", False)
        and _customer_redemptions(coupon_id, user) >= per_customer
    ):
        raise InvalidCouponError(
            InvalidCouponError.CUSTOMER_LIMIT_REACHED,
            "You have already used this coupon the maximum number of times",
        )

    limited = Q(usage_limit__isnull=True) | Q(used_count__lt=F("usage_limit"))
    updated = Coupon.objects.filter(Q(pk=coupon_id, is_active=True) & limited).update(
        used_count=F("used_count") + 1
    )
    if updated != 1:
        raise InvalidCouponError(
            InvalidCouponError.USAGE_EXHAUSTED,
            "This coupon has reached its usage limit",
        )

    redemption = CouponRedemption.objects.create(
        coupon_id=coupon_id,
        user=user if getattr(user, "is_authenticated", False) else None,
        order=order,
        discount_amount=money(discount_amount),
    )

    logger.info(
        "Coupon redeemed",
        extra={"coupon_id": str(coupon_id), "order_id": str(order.id)},
    )
    return redemption
