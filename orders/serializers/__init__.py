from .address import AddressSerializer
from .order import OrderItemSerializer, OrderListSerializer, OrderSerializer, PaymentAttemptSerializer
from .checkout import AddressInputSerializer, CheckoutInputSerializer, ShippingMethodSerializer

__all__ = [
    "AddressSerializer",
    "AddressInputSerializer",
    "CheckoutInputSerializer",
    "OrderItemSerializer",
    "OrderListSerializer",
    "OrderSerializer",
    "PaymentAttemptSerializer",
    "ShippingMethodSerializer",
]
