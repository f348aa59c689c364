# carts/services/identity.py

"""
CART IDENTITY RESOLVER

Given the caller's auth state and an optional anonymous token, return the one
cart this request operates on.

- Authenticated             -> the user's single cart (created lazily)
- Anonymous + live token    -> that cart
- Anonymous + expired token -> stale cart deleted, new cart + new token
- Anonymous, no/unknown tok -> new cart + new token

The token is the ONLY credential of an anonymous cart. Transport (cookie /
header) is a view concern; see carts.views.api.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from carts.models import Cart

logger = logging.getLogger(__name__)


@dataclass
class CartContext:
    """
    Request-scoped cart handle. Passed explicitly into every cart operation;
    nothing is cached across requests.
    """

    cart: Cart
    token: str | None = None
    token_issued: bool = False
    is_authenticated: bool = False


def new_token() -> str:
    return secrets.token_hex(32)


def _is_authenticated(user) -> bool:
    return bool(user is not None and getattr(user, "is_authenticated", False))


def find_anonymous_cart(token: str | None, *, now=None, for_update=False) -> Cart | None:
    """
    Live anonymous cart for `token`, or None (missing / expired).
    """
    token = (token or "").strip()
    if not token:
        return None

    qs = Cart.objects.filter(token=token, user__isnull=True)
    if for_update:
        qs = qs.select_for_update()

    cart = qs.first()
    if cart is None or cart.is_expired(now):
        return None
    return cart


def _create_anonymous_cart(now=None) -> Cart:
    now = now or timezone.now()
    cart = Cart(token=new_token())
    cart.touch(now, save=False)
    cart.save()
    return cart


def resolve_cart(user=None, token: str | None = None, *, now=None) -> CartContext:
    if _is_authenticated(user):
        cart, created = Cart.objects.get_or_create(user=user)
        if created:
            logger.info("Created user cart", extra={"cart_id": str(cart.id), "user_id": user.pk})
        return CartContext(cart=cart, token=None, token_issued=False, is_authenticated=True)

    now = now or timezone.now()
    token = (token or "").strip()

    if token:
        cart = Cart.objects.filter(token=token, user__isnull=True).first()
        if cart is not None and not cart.is_expired(now):
            return CartContext(cart=cart, token=token)

        if cart is not None:
            stale_id = str(cart.id)
            with transaction.atomic():
                cart.delete()
            logger.info("Discarded expired anonymous cart on access", extra={"cart_id": stale_id})

    cart = _create_anonymous_cart(now)
    logger.info("Issued anonymous cart", extra={"cart_id": str(cart.id)})
    return CartContext(cart=cart, token=cart.token, token_issued=True)
