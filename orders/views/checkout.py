# orders/views/checkout.py

"""
CHECKOUT API

Endpoints:
- GET  /api/checkout/shipping-methods/
- POST /api/checkout/validate/                      (dry run, full issue list)
- POST /api/checkout/reserve-and-initiate-payment/  (cart -> order)

Security hardening:
- Authenticated only (orders belong to a user)
- Throttle (checkout) on the write endpoint
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from common.api import StorefrontAPIView
from common.throttling import CheckoutThrottle
from orders.models import ShippingMethod
from orders.serializers import (
    CheckoutInputSerializer,
    OrderSerializer,
    PaymentAttemptSerializer,
    ShippingMethodSerializer,
)
from orders.services.checkout_orchestrator import (
    CheckoutRequest,
    checkout,
    summarize,
    validate_checkout,
)


class ShippingMethodListView(StorefrontAPIView):
    permission_classes = [AllowAny]
    serializer_class = ShippingMethodSerializer

    @extend_schema(
        responses={200: ShippingMethodSerializer(many=True)},
        description="Active shipping methods with their cost",
        tags=["Checkout"],
    )
    def get(self, request):
        qs = ShippingMethod.objects.filter(is_active=True)
        return Response(ShippingMethodSerializer(qs, many=True).data, status=status.HTTP_200_OK)


class CheckoutValidateView(StorefrontAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=None,
        responses={200: OpenApiResponse(description="{ok, can_proceed, issues, subtotal, item_count}")},
        description=(
            "Validate the cart without touching inventory. Returns every issue "
            "(CART_EMPTY, UNAVAILABLE, INSUFFICIENT_STOCK, PRICE_CHANGED)."
        ),
        tags=["Checkout"],
    )
    def post(self, request):
        validation = validate_checkout(request.user)
        return Response(summarize(validation), status=status.HTTP_200_OK)


class ReserveAndInitiatePaymentView(StorefrontAPIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [CheckoutThrottle]

    @extend_schema(
        request=CheckoutInputSerializer,
        responses={
            201: OrderSerializer,
            400: OpenApiResponse(description="VALIDATION_ERROR | INVALID_COUPON"),
            401: OpenApiResponse(description="AUTH_REQUIRED"),
            409: OpenApiResponse(
                description="CHECKOUT_REJECTED | INSUFFICIENT_STOCK | PRICE_CHANGED | CONCURRENCY_CONFLICT"
            ),
        },
        description=(
            "Reserve stock for every cart line and create the order. "
            "Card payments return a payment reference / authorization URL; "
            "cash on delivery is confirmed immediately."
        ),
        tags=["Checkout"],
    )
    def post(self, request):
        s = CheckoutInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        result = checkout(
            request.user,
            CheckoutRequest(
                payment_method=data["payment_method"],
                shipping_method_id=data["shipping_method_id"],
                address_id=data.get("address_id"),
                address=dict(data["address"]) if data.get("address") else None,
                coupon_code=data.get("coupon_code") or None,
                notes=data.get("notes") or "",
                accept_price_changes=data.get("accept_price_changes", False),
            ),
        )

        payload = {
            "order": OrderSerializer(result.order).data,
            "stage": result.stage.value,
            "payment": PaymentAttemptSerializer(result.payment).data if result.payment else None,
        }
        return Response(payload, status=status.HTTP_201_CREATED)
