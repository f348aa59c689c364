# common/throttling.py

"""
Scoped throttles for storefront write endpoints.
Rates live in REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"].
"""

from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class CartWriteThrottle(AnonRateThrottle):
    scope = "cart_write"


class CheckoutThrottle(UserRateThrottle):
    scope = "checkout"


class CallbackThrottle(AnonRateThrottle):
    scope = "webhook"
