# orders/tests/test_order_service.py

from datetime import timedelta

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from catalog.units import SellableUnit
from common.exceptions import InvalidTransitionError, NotFoundError
from inventory.models import InventoryRecord
from inventory.services import ledger
from orders.models import Order, PaymentAttempt
from orders.services import order_service
from orders.services.checkout_orchestrator import checkout
from orders.services.order_lifecycle import can_transition

from .helpers import add, checkout_request, make_product, make_user, user_cart

Status = Order.Status


class OrderLifecycleRulesTests(TestCase):
    def test_pending_payment_can_move_to_every_exit(self):
        for target in (Status.PAID, Status.CASH_ON_DELIVERY_CONFIRMED, Status.CANCELLED, Status.EXPIRED):
            self.assertTrue(can_transition(from_status=Status.PENDING_PAYMENT, to_status=target))

    def test_paid_orders_can_only_be_fulfilled(self):
        self.assertTrue(can_transition(from_status=Status.PAID, to_status=Status.FULFILLED))
        self.assertFalse(can_transition(from_status=Status.PAID, to_status=Status.CANCELLED))

    def test_cash_on_delivery_orders_can_be_fulfilled_or_cancelled(self):
        for target in (Status.FULFILLED, Status.CANCELLED):
            self.assertTrue(can_transition(from_status=Status.CASH_ON_DELIVERY_CONFIRMED, to_status=target))
        self.assertFalse(can_transition(from_status=Status.CASH_ON_DELIVERY_CONFIRMED, to_status=Status.EXPIRED))

    def test_terminal_states_are_final(self):
        for terminal in (Status.CANCELLED, Status.EXPIRED, Status.FULFILLED):
            self.assertFalse(can_transition(from_status=terminal, to_status=Status.PAID))


@override_settings(PAYMENTS={"GATEWAY": "manual"}, ORDER_RESERVATION_MINUTES=60)
class OrderServiceTests(TestCase):
    """
    Order state changes.

    GUARANTEES:
    - cancel / expire release the held stock exactly once
    - fulfil commits the hold (on-hand decreases, reserved returns to 0)
    - payment confirmation is idempotent on its reference
    - illegal transitions raise INVALID_STATE_TRANSITION
    """

    def setUp(self):
        self.user = make_user()
        self.shirt = make_product("SHIRT", "20.00", stock=5)
        self.unit = SellableUnit.of(self.shirt.id)

    def _record(self) -> InventoryRecord:
        return InventoryRecord.objects.get(product=self.shirt, variant__isnull=True)

    def _place(self, qty=2, payment_method="CASH_ON_DELIVERY") -> Order:
        add(user_cart(self.user), self.shirt, qty)
        return checkout(self.user, checkout_request(payment_method=payment_method)).order

    def _card_order_with_attempt(self, qty=2) -> tuple[Order, PaymentAttempt]:
        with self.captureOnCommitCallbacks(execute=True):
            order = self._place(qty, payment_method="CREDIT_CARD")
        return order, PaymentAttempt.objects.get(order=order)

    # =====================================================
    # CANCEL
    # =====================================================

    def test_cancel_releases_reservation_once(self):
        order = self._place(2)
        self.assertEqual(ledger.get_available(self.unit), 3)

        order = order_service.cancel_order(order.id, user=self.user, reason="Changed my mind")

        self.assertEqual(order.status, Status.CANCELLED)
        self.assertEqual(order.reservation_status, Order.ReservationStatus.RELEASED)
        self.assertEqual(order.cancel_reason, "Changed my mind")
        self.assertEqual(ledger.get_available(self.unit), 5)

        with self.assertRaises(InvalidTransitionError):
            order_service.cancel_order(order.id, user=self.user)
        self.assertEqual(self._record().reserved, 0)

    def test_cancel_other_users_order_is_not_found(self):
        order = self._place(1)
        stranger = make_user("mallory")

        with self.assertRaises(NotFoundError):
            order_service.cancel_order(order.id, user=stranger)

    def test_confirmed_cash_on_delivery_order_can_be_cancelled(self):
        order = self._place(2)
        self.assertEqual(order.status, Status.CASH_ON_DELIVERY_CONFIRMED)
        self.assertEqual(order.reservation_status, Order.ReservationStatus.HELD)

        order = order_service.cancel_order(order.id, reason="Refused on delivery")

        self.assertEqual(order.status, Status.CANCELLED)
        self.assertEqual(ledger.get_available(self.unit), 5)

    def test_fulfilled_cash_on_delivery_order_cannot_be_cancelled(self):
        order = order_service.fulfill_order(self._place(1).id)

        with self.assertRaises(InvalidTransitionError):
            order_service.cancel_order(order.id)
        self.assertEqual(self._record().quantity, 4)

    # =====================================================
    # PAYMENT
    # =====================================================

    def test_confirm_payment_marks_paid_and_is_idempotent(self):
        order, attempt = self._card_order_with_attempt()

        paid = order_service.confirm_payment(attempt.reference)
        again = order_service.confirm_payment(attempt.reference)

        self.assertEqual(paid.status, Status.PAID)
        self.assertEqual(again.status, Status.PAID)
        self.assertIsNotNone(paid.paid_at)
        attempt.refresh_from_db()
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_VERIFIED)
        self.assertEqual(self._record().reserved, 2)

    def test_failed_payment_cancels_and_releases(self):
        order, attempt = self._card_order_with_attempt()

        order = order_service.confirm_payment(attempt.reference, success=False)

        self.assertEqual(order.status, Status.CANCELLED)
        self.assertEqual(ledger.get_available(self.unit), 5)

    def test_unknown_reference_is_not_found(self):
        with self.assertRaises(NotFoundError):
            order_service.confirm_payment("NOPE")

    # =====================================================
    # EXPIRY
    # =====================================================

    def test_stale_pending_orders_expire_and_release(self):
        order, attempt = self._card_order_with_attempt(3)
        later = timezone.now() + timedelta(minutes=61)

        self.assertEqual(order_service.expire_stale_orders(now=later), 1)
        self.assertEqual(order_service.expire_stale_orders(now=later), 0)

        order.refresh_from_db()
        attempt.refresh_from_db()
        self.assertEqual(order.status, Status.EXPIRED)
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_EXPIRED)
        self.assertEqual(ledger.get_available(self.unit), 5)

    def test_fresh_pending_orders_are_not_expired(self):
        order, _ = self._card_order_with_attempt()

        self.assertEqual(order_service.expire_stale_orders(), 0)
        with self.assertRaises(InvalidTransitionError):
            order_service.expire_order(order.id)

    def test_expire_command_runs(self):
        order, _ = self._card_order_with_attempt()
        Order.objects.filter(pk=order.pk).update(reservation_expires_at=timezone.now() - timedelta(minutes=1))

        call_command("expire_pending_orders")

        order.refresh_from_db()
        self.assertEqual(order.status, Status.EXPIRED)

    # =====================================================
    # FULFILMENT
    # =====================================================

    def test_fulfil_commits_the_reservation(self):
        order = self._place(2)

        order = order_service.fulfill_order(order.id)

        record = self._record()
        self.assertEqual(order.status, Status.FULFILLED)
        self.assertEqual(order.reservation_status, Order.ReservationStatus.COMMITTED)
        self.assertEqual((record.quantity, record.reserved), (3, 0))

    def test_pending_orders_cannot_be_fulfilled(self):
        order, _ = self._card_order_with_attempt()

        with self.assertRaises(InvalidTransitionError):
            order_service.fulfill_order(order.id)
