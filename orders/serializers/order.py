# orders/serializers/order.py

from rest_framework import serializers

from orders.models import Order, OrderItem, PaymentAttempt


class OrderItemSerializer(serializers.ModelSerializer):
    """
    Order line snapshot (read-only).
    """

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "variant",
            "sku",
            "title",
            "quantity",
            "unit_price",
            "discount_share",
            "line_total",
        ]
        read_only_fields = fields


class PaymentAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentAttempt
        fields = [
            "id",
            "provider",
            "reference",
            "amount",
            "currency",
            "status",
            "authorization_url",
            "initiated_at",
            "verified_at",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_no",
            "status",
            "payment_method",
            "total",
            "currency",
            "item_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_item_count(self, obj):
        return sum(int(i.quantity) for i in obj.items.all())


class OrderSerializer(serializers.ModelSerializer):
    """
    Full order snapshot for the owning customer.
    Money fields are exactly what was computed at checkout.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    payment_attempts = PaymentAttemptSerializer(many=True, read_only=True)
    shipping_method_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_no",
            "status",
            "payment_method",
            "reservation_status",
            "reservation_expires_at",
            "shipping_address",
            "shipping_method_id",
            "shipping_method_name",
            "coupon_code",
            "subtotal",
            "discount",
            "shipping_cost",
            "tax",
            "total",
            "currency",
            "notes",
            "cancel_reason",
            "items",
            "payment_attempts",
            "created_at",
            "paid_at",
            "cancelled_at",
            "fulfilled_at",
        ]
        read_only_fields = fields
