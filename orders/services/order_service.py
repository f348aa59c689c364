# orders/services/order_service.py

"""
ORDER SERVICE (STATE CHANGES)

Applies order_lifecycle transitions and the inventory side effect that
belongs to each one:

    confirm_payment            PENDING_PAYMENT -> PAID
    confirm_cash_on_delivery   PENDING_PAYMENT -> CASH_ON_DELIVERY_CONFIRMED
    cancel_order               PENDING_PAYMENT | COD -> CANCELLED (release held units)
    expire_order               PENDING_PAYMENT -> EXPIRED     (release held units)
    fulfill_order              PAID | COD      -> FULFILLED   (commit held units)

Rules:
- The order row is locked (select_for_update) for the whole transition.
- A reservation is released or committed at most once, tracked by
  Order.reservation_status.
- Money / selection snapshot is never touched here.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from common.exceptions import InvalidTransitionError, NotFoundError
from inventory.services import ledger
from orders.models import Order, PaymentAttempt
from orders.services.notifications import get_notification_service
from orders.services.order_lifecycle import validate_transition

logger = logging.getLogger(__name__)

Status = Order.Status
ReservationStatus = Order.ReservationStatus


# ============================================================
# HELPERS
# ============================================================


def _lock_order(order_id, *, user=None) -> Order:
    qs = Order.objects.select_for_update().filter(pk=order_id)
    if user is not None:
        qs = qs.filter(user=user)
    order = qs.first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _release_reservation(order: Order) -> int:
    if order.reservation_status != ReservationStatus.HELD:
        return 0

    released = 0
    for item in order.items.all():
        if item.reserved_quantity > 0:
            ledger.release(item.unit, item.reserved_quantity)
            released += 1

    order.reservation_status = ReservationStatus.RELEASED
    return released


def _commit_reservation(order: Order) -> int:
    if order.reservation_status != ReservationStatus.HELD:
        return 0

    committed = 0
    for item in order.items.all():
        if item.reserved_quantity > 0:
            ledger.commit(item.unit, item.reserved_quantity)
            committed += 1

    order.reservation_status = ReservationStatus.COMMITTED
    return committed


def _save_transition(order: Order, *fields: str) -> None:
    order.save(update_fields=["status", "reservation_status", "updated_at", *fields])


# ============================================================
# PAYMENT
# ============================================================


@transaction.atomic
def confirm_payment(reference: str, *, success: bool = True, payload=None) -> Order:
    """
    Gateway confirmation for a card payment.

    Idempotent on `reference`: a second confirmation for an already
    verified attempt returns the order unchanged.
    A failed payment cancels the pending order so its units go back on sale.
    """
    attempt = (
        PaymentAttempt.objects.select_for_update()
        .filter(reference=(reference or "").strip())
        .first()
    )
    if attempt is None:
        raise NotFoundError(f"Payment reference {reference} not found")

    order = _lock_order(attempt.order_id)

    if attempt.status == PaymentAttempt.STATUS_VERIFIED:
        return order

    if not success:
        attempt.status = PaymentAttempt.STATUS_FAILED
        if payload is not None:
            attempt.provider_payload = payload
        attempt.save(update_fields=["status", "provider_payload"])

        if order.status == Status.PENDING_PAYMENT:
            _cancel_locked(order, reason="Payment failed")
        logger.warning(
            "Payment failed",
            extra={"order_no": order.order_no, "reference": attempt.reference},
        )
        return order

    validate_transition(order=order, target_status=Status.PAID)

    attempt.mark_verified(payload)
    attempt.save(update_fields=["status", "verified_at", "provider_payload"])

    order.status = Status.PAID
    order.paid_at = timezone.now()
    order.reservation_expires_at = None
    _save_transition(order, "paid_at", "reservation_expires_at")

    logger.info(
        "Order paid",
        extra={"order_no": order.order_no, "reference": attempt.reference},
    )
    return order


@transaction.atomic
def confirm_cash_on_delivery(order: Order) -> Order:
    order = _lock_order(order.pk)
    validate_transition(order=order, target_status=Status.CASH_ON_DELIVERY_CONFIRMED)

    order.status = Status.CASH_ON_DELIVERY_CONFIRMED
    order.reservation_expires_at = None
    _save_transition(order, "reservation_expires_at")
    return order


# ============================================================
# CANCEL / EXPIRE
# ============================================================


def _cancel_locked(order: Order, *, reason: str = "") -> Order:
    validate_transition(order=order, target_status=Status.CANCELLED)

    released = _release_reservation(order)
    order.status = Status.CANCELLED
    order.cancelled_at = timezone.now()
    order.cancel_reason = (reason or "")[:255]
    _save_transition(order, "cancelled_at", "cancel_reason")

    logger.info(
        "Order cancelled",
        extra={"order_no": order.order_no, "released_lines": released, "reason": order.cancel_reason},
    )
    transaction.on_commit(lambda: get_notification_service().order_cancelled(order))
    return order


@transaction.atomic
def cancel_order(order_id, *, user=None, reason: str = "") -> Order:
    """
    Cancel a pending or cash-on-delivery order and release its held units exactly once.
    When `user` is given the order must belong to them (else NOT_FOUND).
    """
    order = _lock_order(order_id, user=user)
    return _cancel_locked(order, reason=reason)


@transaction.atomic
def expire_order(order_id, *, now=None) -> Order:
    now = now or timezone.now()
    order = _lock_order(order_id)

    if order.reservation_expires_at is None or order.reservation_expires_at > now:
        raise InvalidTransitionError(f"Order {order.order_no} reservation has not expired")

    validate_transition(order=order, target_status=Status.EXPIRED)

    released = _release_reservation(order)
    order.status = Status.EXPIRED
    _save_transition(order)

    PaymentAttempt.objects.filter(
        order=order,
        status__in=[PaymentAttempt.STATUS_INITIATED, PaymentAttempt.STATUS_REDIRECTED],
    ).update(status=PaymentAttempt.STATUS_EXPIRED)

    logger.info(
        "Order reservation expired",
        extra={"order_no": order.order_no, "released_lines": released},
    )
    return order


def stale_pending_orders(now=None):
    now = now or timezone.now()
    return Order.objects.filter(
        status=Status.PENDING_PAYMENT,
        reservation_expires_at__isnull=False,
        reservation_expires_at__lte=now,
    )


def expire_stale_orders(now=None, *, limit: int | None = None) -> int:
    """
    Batch expiry. Each order is expired in its own transaction; an order that
    moved on concurrently (paid, cancelled) is skipped.
    """
    now = now or timezone.now()
    ids = list(stale_pending_orders(now).order_by("reservation_expires_at").values_list("id", flat=True))
    if limit is not None:
        ids = ids[:limit]

    expired = 0
    for order_id in ids:
        try:
            expire_order(order_id, now=now)
        except InvalidTransitionError:
            continue
        expired += 1

    if expired:
        logger.info("Expired stale pending orders", extra={"count": expired})
    return expired


# ============================================================
# FULFILMENT
# ============================================================


@transaction.atomic
def fulfill_order(order_id) -> Order:
    order = _lock_order(order_id)
    validate_transition(order=order, target_status=Status.FULFILLED)

    committed = _commit_reservation(order)
    order.status = Status.FULFILLED
    order.fulfilled_at = timezone.now()
    _save_transition(order, "fulfilled_at")

    logger.info(
        "Order fulfilled",
        extra={"order_no": order.order_no, "committed_lines": committed},
    )
    return order
