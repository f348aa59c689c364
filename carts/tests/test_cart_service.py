# carts/tests/test_cart_service.py

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import connection
from django.test import TestCase, override_settings
from django.test.utils import CaptureQueriesContext
from django.utils import timezone

from carts.models import Cart, CartItem
from carts.services import cart_service
from carts.services.cleanup import sweep_expired_anonymous_carts
from carts.services.identity import find_anonymous_cart, resolve_cart
from carts.services.merge import merge_anonymous_cart
from catalog.models import Product
from catalog.units import SellableUnit
from common.exceptions import AuthRequiredError, InvalidCouponError, NotFoundError, ValidationError
from coupons.models import Coupon


def _product(sku, price) -> Product:
    return Product.objects.create(sku=sku, name=sku.title(), base_price=Decimal(price))


def _user(username="una"):
    return get_user_model().objects.create_user(username=username, password="pw-12345")


def _cart_updates(ctx) -> int:
    return sum(1 for q in ctx.captured_queries if q["sql"].startswith('UPDATE "carts_cart"'))


class CartAggregateTests(TestCase):
    """
    Cart line + totals tests.

    GUARANTEES:
    - Adding the same unit twice sums into one line
    - Quantities are whole numbers in [1, CART_MAX_LINE_QUANTITY]
    - Prices are captured from the catalog, never from the client
    - An applied coupon that stops validating contributes no discount
    """

    def setUp(self):
        self.cart = resolve_cart().cart
        self.pen = _product("PEN", "2.50")
        self.book = _product("BOOK", "30.00")

    def test_same_unit_sums_into_one_line(self):
        cart_service.add_line(self.cart, SellableUnit.of(self.pen.id), 2)
        line = cart_service.add_line(self.cart, SellableUnit.of(self.pen.id), 3)

        self.assertEqual(line.quantity, 5)
        self.assertEqual(CartItem.objects.filter(cart=self.cart).count(), 1)

    def test_price_captured_server_side(self):
        line = cart_service.add_line(self.cart, SellableUnit.of(self.book.id), 1)
        self.assertEqual(line.unit_price, Decimal("30.00"))

    def test_invalid_quantities(self):
        unit = SellableUnit.of(self.pen.id)
        for bad in (0, -1, "1.5", "abc", True, 100):
            with self.subTest(qty=bad), self.assertRaises(ValidationError):
                cart_service.add_line(self.cart, unit, bad)

    @override_settings(CART_MAX_LINE_QUANTITY=5)
    def test_cap_applies_to_resulting_quantity(self):
        unit = SellableUnit.of(self.pen.id)
        cart_service.add_line(self.cart, unit, 4)

        with self.assertRaises(ValidationError):
            cart_service.add_line(self.cart, unit, 2)

    def test_unavailable_product_cannot_be_added(self):
        self.pen.is_available = False
        self.pen.save()

        with self.assertRaises(ValidationError):
            cart_service.add_line(self.cart, SellableUnit.of(self.pen.id), 1)

    def test_update_and_remove(self):
        line = cart_service.add_line(self.cart, SellableUnit.of(self.pen.id), 1)

        cart_service.update_quantity(self.cart, line.id, 7)
        self.assertEqual(CartItem.objects.get(pk=line.pk).quantity, 7)

        cart_service.remove_line(self.cart, line.id)
        with self.assertRaises(NotFoundError):
            cart_service.remove_line(self.cart, line.id)

    def test_refresh_line_price(self):
        line = cart_service.add_line(self.cart, SellableUnit.of(self.book.id), 1)
        self.book.base_price = Decimal("35.00")
        self.book.save()

        line = cart_service.refresh_line_price(self.cart, line.id)
        self.assertEqual(line.unit_price, Decimal("35.00"))

    def test_totals_with_fixed_coupon_capped(self):
        Coupon.objects.create(code="FIFTY", type=Coupon.Type.FIXED, value=Decimal("50"))
        cart_service.add_line(self.cart, SellableUnit.of(self.book.id), 1)
        cart_service.apply_coupon(self.cart, "fifty")

        totals = cart_service.compute_totals(self.cart)

        self.assertEqual(totals.subtotal, Decimal("30.00"))
        self.assertEqual(totals.discount, Decimal("30.00"))
        self.assertEqual(totals.total, Decimal("0.00"))

    def test_coupon_that_stops_validating_gives_no_discount(self):
        Coupon.objects.create(
            code="MIN20",
            type=Coupon.Type.FIXED,
            value=Decimal("5"),
            min_order_amount=Decimal("20.00"),
        )
        line = cart_service.add_line(self.cart, SellableUnit.of(self.book.id), 1)
        cart_service.apply_coupon(self.cart, "MIN20")
        cart_service.remove_line(self.cart, line.id)
        cart_service.add_line(self.cart, SellableUnit.of(self.pen.id), 1)

        totals = cart_service.compute_totals(self.cart)

        self.assertEqual(totals.discount, Decimal("0.00"))
        self.assertEqual(totals.coupon_issue["reason"], InvalidCouponError.BELOW_MINIMUM)

    def test_apply_and_remove_coupon_write_the_cart_once(self):
        Coupon.objects.create(code="SAVE10", type=Coupon.Type.PERCENTAGE, value=Decimal("10"))
        cart_service.add_line(self.cart, SellableUnit.of(self.book.id), 1)
        before = Cart.objects.get(pk=self.cart.pk).last_activity_at

        with CaptureQueriesContext(connection) as applied:
            cart_service.apply_coupon(self.cart, "SAVE10")
        with CaptureQueriesContext(connection) as removed:
            cart_service.remove_coupon(self.cart)

        self.assertEqual(_cart_updates(applied), 1)
        self.assertEqual(_cart_updates(removed), 1)

        self.assertGreaterEqual(Cart.objects.get(pk=self.cart.pk).last_activity_at, before)

    def test_apply_unknown_coupon(self):
        with self.assertRaises(InvalidCouponError) as ctx:
            cart_service.apply_coupon(self.cart, "NOPE")
        self.assertEqual(ctx.exception.reason, InvalidCouponError.NOT_FOUND)

    def test_clear_removes_lines_and_coupon(self):
        Coupon.objects.create(code="SAVE10", type=Coupon.Type.PERCENTAGE, value=Decimal("10"))
        cart_service.add_line(self.cart, SellableUnit.of(self.book.id), 1)
        cart_service.apply_coupon(self.cart, "SAVE10")

        cart_service.clear(self.cart)

        self.cart.refresh_from_db()
        self.assertTrue(self.cart.is_empty)
        self.assertIsNone(self.cart.coupon_id)


class CartIdentityTests(TestCase):
    """
    GUARANTEES:
    - Anonymous carts are addressed by an unguessable token
    - A user has exactly one cart
    - Expired anonymous carts are never resolved again
    """

    def test_anonymous_cart_gets_token(self):
        ctx = resolve_cart()

        self.assertTrue(ctx.token_issued)
        self.assertEqual(len(ctx.token), 64)
        self.assertEqual(resolve_cart(token=ctx.token).cart.pk, ctx.cart.pk)

    def test_unknown_token_issues_new_cart(self):
        ctx = resolve_cart(token="not-a-real-token")
        self.assertTrue(ctx.token_issued)
        self.assertNotEqual(ctx.token, "not-a-real-token")

    def test_user_has_one_cart(self):
        user = _user()
        self.assertEqual(resolve_cart(user).cart.pk, resolve_cart(user).cart.pk)
        self.assertEqual(Cart.objects.filter(user=user).count(), 1)

    @override_settings(CART_RETENTION_DAYS=30)
    def test_31_day_old_cart_is_swept_and_unresolvable(self):
        old = resolve_cart()
        cart_service.add_line(old.cart, SellableUnit.of(_product("PEN", "1.00").id), 1)
        fresh = resolve_cart()

        later = timezone.now() + timedelta(days=31)
        self.assertEqual(sweep_expired_anonymous_carts(later), 2)
        self.assertEqual(sweep_expired_anonymous_carts(later), 0)

        self.assertIsNone(find_anonymous_cart(old.token, now=later))
        ctx = resolve_cart(token=old.token, now=later)
        self.assertNotEqual(ctx.cart.pk, old.cart.pk)
        self.assertFalse(Cart.objects.filter(pk=fresh.cart.pk).exists())

    def test_expired_cart_is_replaced_on_access(self):
        old = resolve_cart()
        later = timezone.now() + timedelta(days=31)

        ctx = resolve_cart(token=old.token, now=later)

        self.assertTrue(ctx.token_issued)
        self.assertFalse(Cart.objects.filter(pk=old.cart.pk).exists())

    def test_sweep_command_dry_run_keeps_carts(self):
        resolve_cart()
        Cart.objects.update(expires_at=timezone.now() - timedelta(days=1))

        call_command("sweep_anonymous_carts", "--dry-run")
        self.assertEqual(Cart.objects.count(), 1)

        call_command("sweep_anonymous_carts")
        self.assertEqual(Cart.objects.count(), 0)


class CartMergeTests(TestCase):
    """
    GUARANTEES:
    - Anonymous {A:2} into user {A:1, B:1} gives {A:3, B:1}
    - The anonymous cart is gone after the merge
    - Merging twice is a no-op
    - Summed quantities are capped, never rejected
    """

    def setUp(self):
        self.user = _user()
        self.a = _product("AAA", "10.00")
        self.b = _product("BBB", "5.00")

        self.user_cart = resolve_cart(self.user).cart
        cart_service.add_line(self.user_cart, SellableUnit.of(self.a.id), 1)
        cart_service.add_line(self.user_cart, SellableUnit.of(self.b.id), 1)

        self.anon = resolve_cart()
        cart_service.add_line(self.anon.cart, SellableUnit.of(self.a.id), 2)

    def _quantities(self) -> dict:
        return {
            line.product.sku: line.quantity
            for line in CartItem.objects.filter(cart=self.user_cart).select_related("product")
        }

    def test_merge_sums_matching_units(self):
        result = merge_anonymous_cart(self.anon.token, self.user)

        self.assertTrue(result.merged)
        self.assertEqual(result.merged_line_count, 1)
        self.assertEqual(self._quantities(), {"AAA": 3, "BBB": 1})
        self.assertFalse(Cart.objects.filter(pk=self.anon.cart.pk).exists())

    def test_merge_twice_is_noop(self):
        merge_anonymous_cart(self.anon.token, self.user)
        result = merge_anonymous_cart(self.anon.token, self.user)

        self.assertFalse(result.merged)
        self.assertEqual(self._quantities(), {"AAA": 3, "BBB": 1})

    @override_settings(CART_MAX_LINE_QUANTITY=2)
    def test_merge_caps_quantity(self):
        merge_anonymous_cart(self.anon.token, self.user)
        self.assertEqual(self._quantities()["AAA"], 2)

    def test_merge_carries_coupon_when_user_has_none(self):
        Coupon.objects.create(code="SAVE10", type=Coupon.Type.PERCENTAGE, value=Decimal("10"))
        cart_service.apply_coupon(self.anon.cart, "SAVE10")

        merge_anonymous_cart(self.anon.token, self.user)

        self.user_cart.refresh_from_db()
        self.assertEqual(self.user_cart.coupon.code, "SAVE10")

    def test_merge_requires_user(self):
        with self.assertRaises(AuthRequiredError):
            merge_anonymous_cart(self.anon.token, None)
