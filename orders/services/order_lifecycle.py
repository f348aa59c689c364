"""
ORDER LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for Order entities.

    PENDING_PAYMENT -> PAID | CASH_ON_DELIVERY_CONFIRMED | CANCELLED | EXPIRED
    PAID                        -> FULFILLED
    CASH_ON_DELIVERY_CONFIRMED  -> FULFILLED | CANCELLED

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth
"""

from common.exceptions import InvalidTransitionError
from orders.models import Order

Status = Order.Status

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Status.CANCELLED,
    Status.EXPIRED,
    Status.FULFILLED,
}

ALLOWED_TRANSITIONS = {
    Status.PENDING_PAYMENT: {
        Status.PAID,
        Status.CASH_ON_DELIVERY_CONFIRMED,
        Status.CANCELLED,
        Status.EXPIRED,
    },
    Status.PAID: {
        Status.FULFILLED,
    },
    # COD stays cancellable until fulfilment.
    Status.CASH_ON_DELIVERY_CONFIRMED: {
        Status.FULFILLED,
        Status.CANCELLED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, order: Order, target_status: str):
    if not can_transition(
        from_status=order.status,
        to_status=target_status,
    ):
        raise InvalidTransitionError(
            f"Order {order.order_no} cannot transition from "
            f"'{order.status}' to '{target_status}'"
        )
