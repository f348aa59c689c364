# carts/services/cleanup.py

"""
ANONYMOUS CART SWEEP

Deletes anonymous carts whose retention window has passed.
Idempotent batch operation; safe to run from cron, the management command,
or the admin task endpoint.
"""

from __future__ import annotations

import logging

from django.db.models import Q
from django.utils import timezone

from carts.models import Cart
from carts.models.cart import retention_window

logger = logging.getLogger(__name__)


def expired_anonymous_carts(now=None):
    now = now or timezone.now()
    cutoff = now - retention_window()
    return Cart.objects.filter(user__isnull=True).filter(
        Q(expires_at__lte=now) | Q(expires_at__isnull=True, last_activity_at__lte=cutoff)
    )


def sweep_expired_anonymous_carts(now=None) -> int:
    """
    Returns the number of carts deleted (lines cascade and are not counted).
    """
    _, per_model = expired_anonymous_carts(now).delete()
    deleted = int(per_model.get("carts.Cart", 0))
    logger.info("Swept expired anonymous carts", extra={"deleted": deleted})
    return deleted
