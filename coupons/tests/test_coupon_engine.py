# coupons/tests/test_coupon_engine.py

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase
from django.utils import timezone

from common.exceptions import InvalidCouponError
from coupons.models import Coupon, CouponRedemption
from coupons.services import coupon_engine
from orders.models import Order, PaymentMethod


def _coupon(code, type_, value, **extra) -> Coupon:
    return Coupon.objects.create(code=code, type=type_, value=Decimal(value), **extra)


class ComputeDiscountTests(TestCase):
    """
    GUARANTEES:
    - Percentage discounts respect max_discount
    - Fixed discounts never exceed the subtotal
    - Free shipping contributes no item discount
    - Computation is pure (same input, same output)
    """

    def test_percentage(self):
        c = _coupon("SAVE10", Coupon.Type.PERCENTAGE, "10")
        self.assertEqual(coupon_engine.compute_discount(c, Decimal("100.00")), Decimal("10.00"))

    def test_percentage_capped(self):
        c = _coupon("HALF", Coupon.Type.PERCENTAGE, "50", max_discount=Decimal("20.00"))
        self.assertEqual(coupon_engine.compute_discount(c, Decimal("100.00")), Decimal("20.00"))

    def test_percentage_rounds_half_up_once(self):
        c = _coupon("ODD", Coupon.Type.PERCENTAGE, "15")
        self.assertEqual(coupon_engine.compute_discount(c, Decimal("33.30")), Decimal("5.00"))

    def test_fixed_capped_at_subtotal(self):
        c = _coupon("FIFTY", Coupon.Type.FIXED, "50")
        self.assertEqual(coupon_engine.compute_discount(c, Decimal("30.00")), Decimal("30.00"))

    def test_free_shipping_has_no_item_discount(self):
        c = _coupon("SHIP", Coupon.Type.FREE_SHIPPING, "0")
        snapshot = coupon_engine.CouponSnapshot.from_coupon(c)

        self.assertEqual(coupon_engine.compute_discount(snapshot, Decimal("80.00")), Decimal("0.00"))
        self.assertTrue(snapshot.free_shipping)

    def test_idempotent(self):
        c = _coupon("SAVE10", Coupon.Type.PERCENTAGE, "10")
        first = coupon_engine.compute_discount(c, Decimal("57.35"))
        second = coupon_engine.compute_discount(c, Decimal("57.35"))

        self.assertEqual(first, second)
        c.refresh_from_db()
        self.assertEqual(c.used_count, 0)


class ValidateCouponTests(TestCase):
    """
    GUARANTEES:
    - Each failed rule maps to its own reason code
    - Codes match case-insensitively
    """

    def setUp(self):
        self.user = get_user_model().objects.create_user(username="cora", password="pw-12345")

    def _reason(self, code, subtotal="100.00", user=None) -> str:
        with self.assertRaises(InvalidCouponError) as ctx:
            coupon_engine.validate(code, Decimal(subtotal), user=user)
        return ctx.exception.reason

    def test_valid_code_is_case_insensitive(self):
        _coupon("SAVE10", Coupon.Type.PERCENTAGE, "10")
        snapshot = coupon_engine.validate("save10", Decimal("10.00"))
        self.assertEqual(snapshot.code, "SAVE10")

    def test_unknown(self):
        self.assertEqual(self._reason("NOPE"), InvalidCouponError.NOT_FOUND)

    def test_inactive(self):
        _coupon("OFF", Coupon.Type.FIXED, "5", is_active=False)
        self.assertEqual(self._reason("OFF"), InvalidCouponError.INACTIVE)

    def test_not_started_and_expired(self):
        now = timezone.now()
        _coupon("SOON", Coupon.Type.FIXED, "5", starts_at=now + timedelta(days=1))
        _coupon("OLD", Coupon.Type.FIXED, "5", ends_at=now - timedelta(days=1))

        self.assertEqual(self._reason("SOON"), InvalidCouponError.NOT_STARTED)
        self.assertEqual(self._reason("OLD"), InvalidCouponError.EXPIRED)

    def test_below_minimum(self):
        _coupon("BIG", Coupon.Type.FIXED, "5", min_order_amount=Decimal("200.00"))
        self.assertEqual(self._reason("BIG"), InvalidCouponError.BELOW_MINIMUM)

    def test_usage_exhausted(self):
        _coupon("ONCE", Coupon.Type.FIXED, "5", usage_limit=1, used_count=1)
        self.assertEqual(self._reason("ONCE"), InvalidCouponError.USAGE_EXHAUSTED)

    def test_customer_limit(self):
        coupon = _coupon("MINE", Coupon.Type.FIXED, "5", per_customer_limit=1)
        order = Order.objects.create(user=self.user, payment_method=PaymentMethod.CASH_ON_DELIVERY)
        CouponRedemption.objects.create(
            coupon=coupon,
            user=self.user,
            order=order,
            discount_amount=Decimal("5.00"),
        )

        self.assertEqual(self._reason("MINE", user=self.user), InvalidCouponError.CUSTOMER_LIMIT_REACHED)

        other = get_user_model().objects.create_user(username="dora", password="pw-12345")
        snapshot = coupon_engine.validate("MINE", Decimal("100.00"), other)
        self.assertEqual(snapshot.code, "MINE")


class RedeemTests(TestCase):
    """
    GUARANTEES:
    - A redemption bumps used_count and records who used it
    - The last use can only be taken once
    - The DB rejects used_count beyond usage_limit
    """

    def setUp(self):
        self.user = get_user_model().objects.create_user(username="rex", password="pw-12345")

    def _order(self) -> Order:
        return Order.objects.create(user=self.user, payment_method=PaymentMethod.CASH_ON_DELIVERY)

    def test_redeem_records_usage(self):
        coupon = _coupon("SAVE10", Coupon.Type.PERCENTAGE, "10")
        order = self._order()

        redemption = coupon_engine.redeem(coupon, self.user, order, discount_amount=Decimal("4.00"))

        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)
        self.assertEqual(redemption.discount_amount, Decimal("4.00"))
        self.assertEqual(redemption.order, order)

    def test_last_use_taken_once(self):
        coupon = _coupon("LAST", Coupon.Type.FIXED, "5", usage_limit=1)
        coupon_engine.redeem(coupon, self.user, self._order())

        with self.assertRaises(InvalidCouponError) as ctx:
            coupon_engine.redeem(coupon, self.user, self._order())

        self.assertEqual(ctx.exception.reason, InvalidCouponError.USAGE_EXHAUSTED)
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)

    def test_db_rejects_overuse(self):
        coupon = _coupon("CAP", Coupon.Type.FIXED, "5", usage_limit=1, used_count=1)
        coupon.used_count = 2

        with self.assertRaises(IntegrityError):
            coupon.save()
