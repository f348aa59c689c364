"""
PATH: coupons/models/__init__.py

Coupon models export surface.
"""

from .coupon import Coupon
from .redemption import CouponRedemption

__all__ = [
    "Coupon",
    "CouponRedemption",
]
