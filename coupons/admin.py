# coupons/admin.py

from django.contrib import admin

from coupons.models import Coupon, CouponRedemption


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "type",
        "value",
        "max_discount",
        "min_order_amount",
        "used_count",
        "usage_limit",
        "per_customer_limit",
        "is_active",
        "starts_at",
        "ends_at",
    )
    list_filter = ("type", "is_active")
    search_fields = ("code", "description")
    readonly_fields = ("id", "used_count", "created_at")


@admin.register(CouponRedemption)
class CouponRedemptionAdmin(admin.ModelAdmin):
    list_display = ("coupon", "user", "order", "discount_amount", "redeemed_at")
    search_fields = ("coupon__code", "order__order_no")
    readonly_fields = ("id", "coupon", "user", "order", "discount_amount", "redeemed_at")
