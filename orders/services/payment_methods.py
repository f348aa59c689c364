# orders/services/payment_methods.py

"""
PAYMENT METHOD HANDLERS

One handler per PaymentMethod member. The checkout orchestrator never
branches on the method itself; it asks the registry.

Handler contract:
- place(order, now):   runs INSIDE the checkout transaction
- after_commit(order): runs after the order is committed; must not raise

Rules:
- The registry must cover every PaymentMethod member (checked at import).
"""

from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from common.exceptions import ValidationError
from orders.models import Order, PaymentAttempt, PaymentMethod
from orders.services import order_service
from orders.services.payment_gateway import get_payment_gateway

logger = logging.getLogger(__name__)


def reservation_window() -> timedelta:
    return timedelta(minutes=int(getattr(settings, "ORDER_RESERVATION_MINUTES", 60)))


class PaymentMethodHandler:
    method: str = ""
    # Checkout stage reported once the order is committed.
    stage: str = ""

    def place(self, order: Order, *, now) -> Order:
        raise NotImplementedError

    def after_commit(self, order: Order) -> PaymentAttempt | None:
        return None


class CardPaymentHandler(PaymentMethodHandler):
    """
    Card (credit or debit): the order waits in PENDING_PAYMENT with a reservation deadline.
    The gateway intent is created after commit so a slow or failing gateway
    never rolls back a placed order.
    """

    method = PaymentMethod.CREDIT_CARD
    stage = "AWAITING_PAYMENT"

    def place(self, order: Order, *, now) -> Order:
        order.reservation_expires_at = now + reservation_window()
        order.save(update_fields=["reservation_expires_at", "updated_at"])
        return order

    def after_commit(self, order: Order) -> PaymentAttempt | None:
        try:
            intent = get_payment_gateway().create_intent(order)
        except Exception:
            logger.exception(
                "Payment intent creation failed",
                extra={"order_no": order.order_no},
            )
            return None

        attempt = PaymentAttempt.objects.create(
            order=order,
            provider=intent.provider,
            reference=intent.reference,
            amount=order.total,
            currency=order.currency,
            status=(
                PaymentAttempt.STATUS_REDIRECTED
                if intent.authorization_url
                else PaymentAttempt.STATUS_INITIATED
            ),
            authorization_url=intent.authorization_url,
            provider_payload=intent.payload,
        )
        logger.info(
            "Payment intent created",
            extra={"order_no": order.order_no, "reference": attempt.reference, "provider": attempt.provider},
        )
        return attempt


class DebitCardPaymentHandler(CardPaymentHandler):
    method = PaymentMethod.DEBIT_CARD


class CashOnDeliveryHandler(PaymentMethodHandler):
    """
    Cash on delivery: confirmed immediately. The reservation stays held until
    fulfilment (commit) or cancellation (release).
    """

    method = PaymentMethod.CASH_ON_DELIVERY
    stage = "PLACED"

    def place(self, order: Order, *, now) -> Order:
        PaymentAttempt.objects.create(
            order=order,
            provider=PaymentAttempt.PROVIDER_CASH_ON_DELIVERY,
            reference=f"COD-{order.order_no}",
            amount=order.total,
            currency=order.currency,
            status=PaymentAttempt.STATUS_INITIATED,
        )
        return order_service.confirm_cash_on_delivery(order)


HANDLERS: dict[str, PaymentMethodHandler] = {
    handler.method: handler
    for handler in (
        CardPaymentHandler(),
        DebitCardPaymentHandler(),
        CashOnDeliveryHandler(),
    )
}


def _check_registry():
    missing = set(PaymentMethod.values) - set(HANDLERS)
    if missing:
        raise ImproperlyConfigured(
            f"No payment handler registered for: {', '.join(sorted(missing))}"
        )


_check_registry()


def get_handler(method) -> PaymentMethodHandler:
    key = str(method or "").strip().upper()
    handler = HANDLERS.get(key)
    if handler is None:
        raise ValidationError(
            f"Unsupported payment method: {method}",
            field="payment_method",
        )
    return handler
