"""
PATH: orders/models/__init__.py

ORDERS MODELS PACKAGE EXPORTS
"""

from .address import Address
from .order import Order, PaymentMethod
from .order_item import OrderItem
from .payment_attempt import PaymentAttempt
from .shipping_method import ShippingMethod

__all__ = [
    "Address",
    "Order",
    "OrderItem",
    "PaymentAttempt",
    "PaymentMethod",
    "ShippingMethod",
]
