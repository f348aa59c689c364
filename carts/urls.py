"""
PATH: carts/urls.py

CART URLS (mounted at /api/cart/)
"""

from django.urls import path

from carts.views.api import (
    ApplyCouponView,
    CartLineView,
    CartView,
    MergeCartView,
    RefreshLinePriceView,
)

app_name = "carts"

urlpatterns = [
    path("", CartView.as_view(), name="cart"),
    path("apply-coupon/", ApplyCouponView.as_view(), name="apply-coupon"),
    path("merge/", MergeCartView.as_view(), name="merge"),
    path("<uuid:line_id>/", CartLineView.as_view(), name="line"),
    path("<uuid:line_id>/refresh-price/", RefreshLinePriceView.as_view(), name="refresh-price"),
]
