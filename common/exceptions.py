# common/exceptions.py

"""
STOREFRONT ERROR TAXONOMY

Every failure path of the cart-to-order core raises one of these.
Views render them as:
    {"error": {"code": ..., "message": ..., <extra payload>}}

Rules:
- Caller-fixable problems carry enough detail to fix them (per-line stock, old/new price).
- InternalError never leaks internals to the caller; details go to the log.
"""

from __future__ import annotations

from rest_framework import status


class StorefrontError(Exception):
    """Base exception for all storefront core failures."""

    code = "STOREFRONT_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra_payload(self) -> dict:
        return {}

    def as_payload(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        payload.update(self.extra_payload())
        return payload


class ValidationError(StorefrontError):
    """Malformed input; surfaced verbatim."""

    code = "VALIDATION_ERROR"
    default_message = "Please check your input and try again"

    def __init__(self, message: str | None = None, *, field: str | None = None):
        super().__init__(message)
        self.field = field

    def extra_payload(self) -> dict:
        return {"field": self.field} if self.field else {}


class InsufficientStockError(StorefrontError):
    """
    One or more units cannot cover the requested quantity.

    lines: [{"product_id", "variant_id", "sku", "requested", "available"}]
    """

    code = "INSUFFICIENT_STOCK"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Some items are out of stock"

    def __init__(self, message: str | None = None, *, lines: list[dict] | None = None):
        super().__init__(message)
        self.lines = list(lines or [])

    def extra_payload(self) -> dict:
        return {"lines": self.lines}


class PriceChangedError(StorefrontError):
    """
    Catalog price drifted since items were added. Recoverable by re-confirming.

    lines: [{"line_id", "sku", "old_price", "new_price"}]
    """

    code = "PRICE_CHANGED"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Prices changed since items were added to the cart"

    def __init__(self, message: str | None = None, *, lines: list[dict] | None = None):
        super().__init__(message)
        self.lines = list(lines or [])

    def extra_payload(self) -> dict:
        return {"lines": self.lines}


class InvalidCouponError(StorefrontError):
    code = "INVALID_COUPON"

    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_STARTED = "NOT_STARTED"
    EXPIRED = "EXPIRED"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    USAGE_EXHAUSTED = "USAGE_EXHAUSTED"
    CUSTOMER_LIMIT_REACHED = "CUSTOMER_LIMIT_REACHED"

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason

    def extra_payload(self) -> dict:
        return {"reason": self.reason}


class ConcurrencyConflictError(StorefrontError):
    """A concurrent writer won a race. Safe to retry."""

    code = "CONCURRENCY_CONFLICT"
    http_status = status.HTTP_409_CONFLICT
    default_message = "The request conflicted with a concurrent update. Please retry."

    def extra_payload(self) -> dict:
        return {"retryable": True}


class AuthRequiredError(StorefrontError):
    code = "AUTH_REQUIRED"
    http_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class NotFoundError(StorefrontError):
    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidTransitionError(StorefrontError):
    code = "INVALID_STATE_TRANSITION"
    http_status = status.HTTP_409_CONFLICT


class CheckoutRejectedError(StorefrontError):
    """
    Checkout aborted before inventory was touched.

    issues: full list (never just the first), each
        {"code", "line_id", "sku", "message", ...}
    """

    code = "CHECKOUT_REJECTED"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Checkout cannot proceed"

    def __init__(self, message: str | None = None, *, issues: list[dict] | None = None):
        super().__init__(message)
        self.issues = list(issues or [])

    def extra_payload(self) -> dict:
        return {"issues": self.issues}


class InternalError(StorefrontError):
    code = "INTERNAL_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong. Please try again."
