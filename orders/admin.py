# orders/admin.py

from django.contrib import admin

from orders.models import Address, Order, OrderItem, PaymentAttempt, ShippingMethod


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    fields = ("sku", "title", "quantity", "unit_price", "discount_share", "line_total", "reserved_quantity")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class PaymentAttemptInline(admin.TabularInline):
    model = PaymentAttempt
    extra = 0
    can_delete = False
    fields = ("provider", "reference", "amount", "status", "initiated_at", "verified_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_no", "user", "status", "payment_method", "total", "created_at")
    list_filter = ("status", "payment_method", "reservation_status", "created_at")
    search_fields = ("order_no", "user__username", "user__email", "coupon_code")
    readonly_fields = (
        "id",
        "order_no",
        "user",
        "status",
        "payment_method",
        "reservation_status",
        "reservation_expires_at",
        "address",
        "shipping_address",
        "shipping_method",
        "shipping_method_name",
        "coupon_code",
        "subtotal",
        "discount",
        "shipping_cost",
        "tax",
        "total",
        "currency",
        "cancel_reason",
        "created_at",
        "updated_at",
        "paid_at",
        "cancelled_at",
        "fulfilled_at",
    )
    inlines = [OrderItemInline, PaymentAttemptInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ShippingMethod)
class ShippingMethodAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "cost", "estimated_days", "is_active", "sort_order")
    list_filter = ("is_active",)
    ordering = ("sort_order", "name")


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ("first_name", "last_name", "city", "country", "user", "is_default")
    search_fields = ("first_name", "last_name", "email", "user__username")
