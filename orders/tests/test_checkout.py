# orders/tests/test_checkout.py

from decimal import Decimal
from unittest import mock

from django.contrib.auth.models import AnonymousUser
from django.core import mail
from django.test import TestCase, override_settings

from carts.models import CartItem
from carts.services import cart_service
from catalog.units import SellableUnit
from common.exceptions import (
    AuthRequiredError,
    CheckoutRejectedError,
    InsufficientStockError,
    InvalidCouponError,
    PriceChangedError,
)
from coupons.models import Coupon, CouponRedemption
from inventory.services import ledger
from orders.models import Order, OrderItem, PaymentAttempt, PaymentMethod, ShippingMethod
from orders.services.checkout_orchestrator import (
    CheckoutStage,
    allocate_discount,
    checkout,
    validate_checkout,
)
from orders.services.payment_methods import get_handler

from .helpers import add, checkout_request, make_product, make_user, user_cart


@override_settings(PAYMENTS={"GATEWAY": "manual"}, CHECKOUT_TAX_RATE="0.10")
class CheckoutTests(TestCase):
    """
    Checkout orchestrator tests.

    GUARANTEES:
    - Order totals are the recomputed snapshot (subtotal - discount + shipping + tax)
    - Stock is reserved for every line; the cart is emptied
    - Hard issues abort before inventory is touched, with the full issue list
    - Price drift aborts unless accepted
    - A failed reservation rolls back every reservation taken
    """

    def setUp(self):
        self.user = make_user()
        self.shirt = make_product("SHIRT", "50.00", stock=10)
        self.mug = make_product("MUG", "25.00", stock=10)
        self.cart = user_cart(self.user)
        Coupon.objects.create(code="SAVE10", type=Coupon.Type.PERCENTAGE, value=Decimal("10"))

    def _available(self, product) -> int:
        return ledger.get_available(SellableUnit.of(product.id))

    # =====================================================
    # HAPPY PATH
    # =====================================================

    def test_save10_cash_on_delivery_end_to_end(self):
        add(self.cart, self.shirt, 1)
        add(self.cart, self.mug, 2)
        cart_service.apply_coupon(self.cart, "SAVE10", user=self.user)

        result = checkout(self.user, checkout_request())
        order = result.order

        self.assertEqual(result.stage, CheckoutStage.PLACED)
        self.assertEqual(order.status, Order.Status.CASH_ON_DELIVERY_CONFIRMED)
        self.assertEqual(order.subtotal, Decimal("100.00"))
        self.assertEqual(order.discount, Decimal("10.00"))
        self.assertEqual(order.subtotal - order.discount, Decimal("90.00"))
        self.assertEqual(order.shipping_cost, Decimal("0.00"))
        self.assertEqual(order.tax, Decimal("9.00"))
        self.assertEqual(order.total, Decimal("99.00"))
        self.assertEqual(
            order.total,
            order.subtotal - order.discount + order.shipping_cost + order.tax,
        )
        self.assertEqual(order.coupon_code, "SAVE10")

        items = list(order.items.all())
        self.assertEqual(sum(i.line_total for i in items), order.subtotal)
        self.assertEqual(sum(i.discount_share for i in items), order.discount)

        self.assertEqual(self._available(self.shirt), 9)
        self.assertEqual(self._available(self.mug), 8)
        self.assertEqual(order.reservation_status, Order.ReservationStatus.HELD)

        self.cart.refresh_from_db()
        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())
        self.assertIsNone(self.cart.coupon_id)

        coupon = Coupon.objects.get(code="SAVE10")
        self.assertEqual(coupon.used_count, 1)
        self.assertTrue(CouponRedemption.objects.filter(order=order, user=self.user).exists())

        self.assertEqual(result.payment.provider, PaymentAttempt.PROVIDER_CASH_ON_DELIVERY)
        self.assertEqual(order.shipping_address["city"], "London")

    def test_card_checkout_waits_for_payment_with_intent_after_commit(self):
        add(self.cart, self.shirt, 2)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            result = checkout(self.user, checkout_request(payment_method="CREDIT_CARD"))

        self.assertEqual(len(callbacks), 2)
        self.assertEqual(result.stage, CheckoutStage.AWAITING_PAYMENT)
        self.assertEqual(result.order.status, Order.Status.PENDING_PAYMENT)
        self.assertIsNotNone(result.order.reservation_expires_at)

        attempt = PaymentAttempt.objects.get(order=result.order)
        self.assertEqual(attempt.provider, PaymentAttempt.PROVIDER_MANUAL)
        self.assertEqual(attempt.amount, result.order.total)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(result.order.order_no, mail.outbox[0].subject)

    def test_debit_card_follows_the_card_flow(self):
        add(self.cart, self.shirt, 1)

        with self.captureOnCommitCallbacks(execute=True):
            result = checkout(self.user, checkout_request(payment_method="debit_card"))

        self.assertEqual(result.stage, CheckoutStage.AWAITING_PAYMENT)
        self.assertEqual(result.order.payment_method, PaymentMethod.DEBIT_CARD)
        self.assertIsNotNone(result.order.reservation_expires_at)
        self.assertTrue(PaymentAttempt.objects.filter(order=result.order).exists())

    def test_every_payment_method_has_a_handler(self):
        for method in PaymentMethod.values:
            self.assertEqual(get_handler(method).method, method)

    def test_free_shipping_coupon_waives_shipping(self):
        Coupon.objects.create(code="SHIPFREE", type=Coupon.Type.FREE_SHIPPING)
        add(self.cart, self.shirt, 1)
        express = ShippingMethod.objects.get(code="express")

        result = checkout(
            self.user,
            checkout_request(shipping=express, coupon_code="SHIPFREE"),
        )

        self.assertEqual(result.order.shipping_cost, Decimal("0.00"))
        self.assertEqual(result.order.discount, Decimal("0.00"))
        self.assertEqual(result.order.shipping_method_name, express.name)

    def test_paid_shipping_is_added_to_total(self):
        add(self.cart, self.mug, 1)
        express = ShippingMethod.objects.get(code="express")

        order = checkout(self.user, checkout_request(shipping=express)).order

        self.assertEqual(order.shipping_cost, Decimal("15.00"))
        self.assertEqual(order.total, Decimal("25.00") + Decimal("15.00") + Decimal("2.50"))

    # =====================================================
    # REJECTIONS
    # =====================================================

    def test_empty_cart_is_rejected(self):
        with self.assertRaises(CheckoutRejectedError) as ctx:
            checkout(self.user, checkout_request())

        self.assertEqual([i["code"] for i in ctx.exception.issues], ["CART_EMPTY"])

    def test_anonymous_user_cannot_check_out(self):
        with self.assertRaises(AuthRequiredError):
            checkout(AnonymousUser(), checkout_request())

    def test_all_hard_issues_are_reported_before_reserving(self):
        hat = make_product("HAT", "5.00", stock=3)
        add(self.cart, self.shirt, 20)
        add(self.cart, hat, 1)
        hat.is_archived = True
        hat.save()

        with self.assertRaises(CheckoutRejectedError) as ctx:
            checkout(self.user, checkout_request())

        codes = sorted(i["code"] for i in ctx.exception.issues)
        self.assertEqual(codes, ["INSUFFICIENT_STOCK", "UNAVAILABLE"])
        shortage = next(i for i in ctx.exception.issues if i["code"] == "INSUFFICIENT_STOCK")
        self.assertEqual((shortage["requested"], shortage["available"]), (20, 10))

        self.assertEqual(self._available(self.shirt), 10)
        self.assertFalse(Order.objects.exists())
        self.assertEqual(CartItem.objects.filter(cart=self.cart).count(), 2)

    def test_price_change_requires_acceptance(self):
        add(self.cart, self.shirt, 1)
        self.shirt.base_price = Decimal("55.00")
        self.shirt.save()

        with self.assertRaises(PriceChangedError) as ctx:
            checkout(self.user, checkout_request())

        self.assertEqual(ctx.exception.lines[0]["old_price"], "50.00")
        self.assertEqual(ctx.exception.lines[0]["new_price"], "55.00")
        self.assertEqual(self._available(self.shirt), 10)

        order = checkout(self.user, checkout_request(accept_price_changes=True)).order
        self.assertEqual(order.items.get().unit_price, Decimal("55.00"))
        self.assertEqual(order.subtotal, Decimal("55.00"))

    def test_invalid_coupon_aborts_checkout(self):
        Coupon.objects.create(
            code="BIGSPEND",
            type=Coupon.Type.FIXED,
            value=Decimal("5"),
            min_order_amount=Decimal("500"),
        )
        add(self.cart, self.mug, 1)

        with self.assertRaises(InvalidCouponError) as ctx:
            checkout(self.user, checkout_request(coupon_code="BIGSPEND"))

        self.assertEqual(ctx.exception.reason, InvalidCouponError.BELOW_MINIMUM)
        self.assertEqual(self._available(self.mug), 10)

    # =====================================================
    # ATOMICITY
    # =====================================================

    def test_failed_reservation_rolls_back_everything(self):
        add(self.cart, self.shirt, 2)
        add(self.cart, self.mug, 5)
        # Another checkout takes the mugs between validation and reservation.
        ledger.reserve(SellableUnit.of(self.mug.id), 8)

        optimistic = {
            SellableUnit.of(self.shirt.id): 10,
            SellableUnit.of(self.mug.id): 10,
        }
        with mock.patch.object(ledger, "get_availability_map", return_value=optimistic):
            with self.assertRaises(InsufficientStockError):
                checkout(self.user, checkout_request())

        self.assertEqual(self._available(self.shirt), 10)
        self.assertEqual(self._available(self.mug), 2)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.assertEqual(CartItem.objects.filter(cart=self.cart).count(), 2)

    # =====================================================
    # DRY RUN
    # =====================================================

    def test_validate_checkout_collects_issues_without_writes(self):
        add(self.cart, self.shirt, 11)
        self.mug.base_price = Decimal("30.00")
        self.mug.save()
        add_mug = add(self.cart, self.mug, 1)
        self.assertEqual(add_mug.unit_price, Decimal("30.00"))

        validation = validate_checkout(self.user)

        self.assertFalse(validation.ok)
        self.assertEqual([i["code"] for i in validation.hard_issues], ["INSUFFICIENT_STOCK"])
        self.assertEqual(validation.price_changes, [])
        self.assertEqual(self._available(self.shirt), 10)


class SnapshotImmutabilityTests(TestCase):
    """
    GUARANTEES:
    - Order money/selection fields cannot change after creation
    - Order items cannot be re-saved
    - Catalog price changes never leak into placed orders
    """

    def setUp(self):
        self.user = make_user()
        self.shirt = make_product("SHIRT", "50.00", stock=5)
        add(user_cart(self.user), self.shirt, 1)
        self.order = checkout(self.user, checkout_request()).order

    def test_total_cannot_be_changed(self):
        self.order.total = Decimal("1.00")
        with self.assertRaises(ValueError):
            self.order.save()

    def test_items_cannot_be_resaved(self):
        item = self.order.items.get()
        item.quantity = 3
        with self.assertRaises(ValueError):
            item.save()

    def test_catalog_price_change_does_not_touch_order(self):
        self.shirt.base_price = Decimal("99.00")
        self.shirt.save()

        self.order.refresh_from_db()
        self.assertEqual(self.order.items.get().unit_price, Decimal("50.00"))
        self.assertEqual(self.order.subtotal, Decimal("50.00"))


class AllocateDiscountTests(TestCase):
    def test_shares_sum_to_discount(self):
        shares = allocate_discount(
            [Decimal("10.00"), Decimal("10.00"), Decimal("10.00")],
            Decimal("10.00"),
        )
        self.assertEqual(shares, [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")])

    def test_zero_discount(self):
        self.assertEqual(allocate_discount([Decimal("5.00")], Decimal("0")), [Decimal("0.00")])
