# orders/views/orders.py

"""
======================================================
PATH: orders/views/orders.py
======================================================
ORDER VIEWSET (CUSTOMER)

Purpose:
- Order history for the logged-in customer (list + retrieve).
- Cancel a pending or cash-on-delivery order (held stock goes back on sale).

Security:
- Requires IsAuthenticated
- Queryset is always scoped to request.user
======================================================
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.api import StorefrontErrorMixin
from orders.filters import OrderFilter
from orders.models import Order
from orders.serializers import OrderListSerializer, OrderSerializer
from orders.services.order_service import cancel_order


class CancelOrderInputSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class OrderViewSet(StorefrontErrorMixin, viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter

    def get_queryset(self):
        return (
            Order.objects.filter(user=self.request.user)
            .prefetch_related("items", "payment_attempts")
            .order_by("-created_at")
        )

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        return OrderSerializer

    @extend_schema(
        request=CancelOrderInputSerializer,
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="NOT_FOUND"),
            409: OpenApiResponse(description="INVALID_STATE_TRANSITION"),
        },
        description="Cancel a pending or cash-on-delivery order and release its reserved stock",
        tags=["Orders"],
    )
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        s = CancelOrderInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        order = cancel_order(pk, user=request.user, reason=s.validated_data["reason"])
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)
