# orders/services/notifications.py

"""
NOTIFICATION SERVICE (COLLABORATOR)

Fire-and-forget customer emails for order creation / cancellation.
Failures are logged and never propagate: a notification can not undo an order.
Callers schedule these with transaction.on_commit.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


class NotificationService:
    def _recipient(self, order) -> str:
        return (getattr(order.user, "email", "") or order.shipping_address.get("email") or "").strip()

    def _send(self, *, order, subject: str, body: str, event: str) -> bool:
        if not getattr(settings, "ORDER_NOTIFICATIONS_ENABLED", True):
            return False

        recipient = self._recipient(order)
        if not recipient:
            logger.info("No recipient for order notification", extra={"order_no": order.order_no, "event": event})
            return False

        try:
            send_mail(
                subject,
                body,
                getattr(settings, "DEFAULT_FROM_EMAIL", None),
                [recipient],
                fail_silently=False,
            )
        except Exception:
            logger.exception(
                "Order notification failed",
                extra={"order_no": order.order_no, "event": event},
            )
            return False
        return True

    def order_created(self, order) -> bool:
        return self._send(
            order=order,
            event="order_created",
            subject=f"Order {order.order_no} received",
            body=(
                f"Thanks for your order {order.order_no}.\n"
                f"Total: {order.total} {order.currency}\n"
                f"Status: {order.get_status_display()}\n"
            ),
        )

    def order_cancelled(self, order) -> bool:
        return self._send(
            order=order,
            event="order_cancelled",
            subject=f"Order {order.order_no} cancelled",
            body=(
                f"Your order {order.order_no} has been cancelled.\n"
                + (f"Reason: {order.cancel_reason}\n" if order.cancel_reason else "")
            ),
        )


def get_notification_service() -> NotificationService:
    return NotificationService()
