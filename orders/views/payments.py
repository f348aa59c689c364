# orders/views/payments.py

"""
PAYMENT CONFIRMATION CALLBACK

POST /api/payments/confirm/
Headers:
    X-Payment-Secret: <PAYMENT_CALLBACK_SECRET>
Body:
    {"reference": "...", "status": "success" | "failed", "payload": {...}}

Rules:
- Shared-secret check only; fails closed when the secret is not configured.
- Idempotent on reference (re-delivery of a success returns 200 again).
"""

from __future__ import annotations

import hmac
import logging

from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from common.api import StorefrontAPIView, error_response
from common.throttling import CallbackThrottle
from orders.services.order_service import confirm_payment

logger = logging.getLogger(__name__)


def secret_matches(provided: str | None, expected: str | None) -> bool:
    expected = (expected or "").strip()
    if not expected:
        return False
    return hmac.compare_digest((provided or "").strip().encode(), expected.encode())


class PaymentConfirmInputSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=128)
    status = serializers.ChoiceField(choices=["success", "failed"])
    payload = serializers.DictField(required=False, default=dict)


class PaymentConfirmView(StorefrontAPIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [CallbackThrottle]

    @extend_schema(
        request=PaymentConfirmInputSerializer,
        responses={
            200: OpenApiResponse(description="{order_no, status}"),
            403: OpenApiResponse(description="FORBIDDEN"),
            404: OpenApiResponse(description="NOT_FOUND"),
        },
        description="Gateway confirmation callback for a card payment",
        tags=["Payments"],
    )
    def post(self, request):
        if not secret_matches(
            request.headers.get("X-Payment-Secret"),
            getattr(settings, "PAYMENT_CALLBACK_SECRET", ""),
        ):
            logger.warning("Payment confirmation rejected: bad secret")
            return error_response(
                code="FORBIDDEN",
                message="Invalid callback secret",
                http_status=status.HTTP_403_FORBIDDEN,
            )

        s = PaymentConfirmInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        order = confirm_payment(
            data["reference"],
            success=data["status"] == "success",
            payload=data.get("payload") or None,
        )
        return Response({"order_no": order.order_no, "status": order.status}, status=status.HTTP_200_OK)
