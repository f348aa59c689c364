"""
PATH: orders/urls.py

ORDER / CHECKOUT URLS (mounted at /api/)
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from orders.views.addresses import AddressViewSet
from orders.views.checkout import (
    CheckoutValidateView,
    ReserveAndInitiatePaymentView,
    ShippingMethodListView,
)
from orders.views.orders import OrderViewSet
from orders.views.payments import PaymentConfirmView
from orders.views.tasks import CleanupTaskView

app_name = "orders"

router = SimpleRouter()
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"checkout/addresses", AddressViewSet, basename="address")

urlpatterns = [
    path("checkout/validate/", CheckoutValidateView.as_view(), name="checkout-validate"),
    path("checkout/shipping-methods/", ShippingMethodListView.as_view(), name="shipping-methods"),
    path(
        "checkout/reserve-and-initiate-payment/",
        ReserveAndInitiatePaymentView.as_view(),
        name="checkout",
    ),
    path("payments/confirm/", PaymentConfirmView.as_view(), name="payment-confirm"),
    path("admin/tasks/cleanup/", CleanupTaskView.as_view(), name="tasks-cleanup"),
    path("", include(router.urls)),
]
