# carts/serializers/cart.py

"""
CART SERIALIZER

Purpose:
- Return a cart in a frontend-friendly shape.
- Totals are computed server-side through the cart service (single source of
  truth) and never trusted from the client.

Context:
- "user": the requesting user (coupon per-customer checks), optional
"""

from rest_framework import serializers

from carts.models import Cart
from carts.services.cart_service import compute_totals

from .cart_item import CartItemSerializer


class CartSerializer(serializers.ModelSerializer):
    items = CartItemSerializer(many=True, read_only=True)
    is_anonymous = serializers.BooleanField(read_only=True)

    class Meta:
        model = Cart
        fields = [
            "id",
            "is_anonymous",
            "items",
            "expires_at",
            "updated_at",
        ]
        read_only_fields = fields

    def to_representation(self, instance):
        data = super().to_representation(instance)

        totals = compute_totals(instance, user=self.context.get("user"))
        data.update(
            {
                "item_count": totals.item_count,
                "coupon": totals.coupon.as_dict() if totals.coupon else None,
                "coupon_issue": totals.coupon_issue,
                "free_shipping": totals.free_shipping,
                "subtotal": f"{totals.subtotal:.2f}",
                "discount": f"{totals.discount:.2f}",
                "total": f"{totals.total:.2f}",
            }
        )
        return data
