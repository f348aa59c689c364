# orders/serializers/checkout.py

"""
CHECKOUT INPUT SERIALIZERS

Shape checks only. Business validation (stock, prices, coupon rules,
address ownership) belongs to the checkout orchestrator.
"""

from rest_framework import serializers

from orders.models import Address, PaymentMethod, ShippingMethod


class ShippingMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShippingMethod
        fields = ["id", "code", "name", "description", "cost", "estimated_days"]
        read_only_fields = fields


class AddressInputSerializer(serializers.ModelSerializer):
    class Meta:
        model = Address
        fields = list(Address.SNAPSHOT_FIELDS)


class CheckoutInputSerializer(serializers.Serializer):
    address_id = serializers.UUIDField(required=False, allow_null=True)
    address = AddressInputSerializer(required=False, allow_null=True)
    shipping_method_id = serializers.UUIDField()
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    coupon_code = serializers.CharField(required=False, allow_blank=True, max_length=64, default="")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default="")
    accept_price_changes = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get("address_id") and not attrs.get("address"):
            raise serializers.ValidationError({"address": "Provide address_id or address"})
        return attrs
