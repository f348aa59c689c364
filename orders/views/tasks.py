# orders/views/tasks.py

"""
SCHEDULED MAINTENANCE (HTTP TRIGGER)

POST /api/admin/tasks/cleanup/
Headers:
    Authorization: Bearer <ADMIN_TASKS_SECRET>

Runs the same jobs as the management commands:
- sweep_anonymous_carts
- expire_pending_orders
"""

from __future__ import annotations

from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from carts.services.cleanup import sweep_expired_anonymous_carts
from common.api import StorefrontAPIView, error_response
from orders.services.order_service import expire_stale_orders
from orders.views.payments import secret_matches


def _bearer(request) -> str:
    header = request.headers.get("Authorization") or ""
    scheme, _, value = header.partition(" ")
    return value.strip() if scheme.lower() == "bearer" else ""


class CleanupTaskView(StorefrontAPIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        request=None,
        responses={
            200: OpenApiResponse(description="{carts_deleted, orders_expired}"),
            403: OpenApiResponse(description="FORBIDDEN"),
        },
        description="Delete expired anonymous carts and expire stale pending orders",
        tags=["Admin tasks"],
    )
    def post(self, request):
        if not secret_matches(_bearer(request), getattr(settings, "ADMIN_TASKS_SECRET", "")):
            return error_response(
                code="FORBIDDEN",
                message="Invalid task secret",
                http_status=status.HTTP_403_FORBIDDEN,
            )

        carts_deleted = sweep_expired_anonymous_carts()
        orders_expired = expire_stale_orders()
        return Response(
            {"carts_deleted": carts_deleted, "orders_expired": orders_expired},
            status=status.HTTP_200_OK,
        )
