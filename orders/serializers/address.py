# orders/serializers/address.py

from rest_framework import serializers

from orders.models import Address


class AddressSerializer(serializers.ModelSerializer):
    """
    Saved address (read + write).
    user is never taken from the payload; the viewset scopes it to request.user.
    """

    class Meta:
        model = Address
        fields = ["id", *Address.SNAPSHOT_FIELDS, "is_default", "created_at"]
        read_only_fields = ["id", "created_at"]
