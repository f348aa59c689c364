# orders/views/addresses.py

"""
======================================================
PATH: orders/views/addresses.py
======================================================
SAVED ADDRESS VIEWSET (CUSTOMER)

Purpose:
- List / create / update / delete the customer's saved addresses.
- Mark one address as the default (used to prefill checkout).

Security:
- Requires IsAuthenticated
- Every lookup is scoped to request.user (other users' ids are NOT_FOUND)
======================================================
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.api import StorefrontErrorMixin
from orders.serializers import AddressSerializer
from orders.services import address_book


class AddressViewSet(StorefrontErrorMixin, viewsets.ModelViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = AddressSerializer
    pagination_class = None
    http_method_names = ["get", "post", "put", "patch", "delete"]

    def get_queryset(self):
        return address_book.list_addresses(self.request.user)

    def get_object(self):
        return address_book.get_address(self.request.user, self.kwargs["pk"])

    def create(self, request, *args, **kwargs):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        address = address_book.create_address(request.user, s.validated_data)
        return Response(AddressSerializer(address).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        s = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        s.is_valid(raise_exception=True)

        address = address_book.update_address(request.user, kwargs["pk"], s.validated_data)
        return Response(AddressSerializer(address).data, status=status.HTTP_200_OK)

    def destroy(self, request, *args, **kwargs):
        address_book.delete_address(request.user, kwargs["pk"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        request=None,
        responses={200: AddressSerializer, 404: OpenApiResponse(description="NOT_FOUND")},
        description="Make this the customer's default address",
        tags=["Addresses"],
    )
    @action(detail=True, methods=["post"], url_path="set-default")
    def set_default(self, request, pk=None):
        address = address_book.set_default_address(request.user, pk)
        return Response(AddressSerializer(address).data, status=status.HTTP_200_OK)
