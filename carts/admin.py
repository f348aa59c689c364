# carts/admin.py

from django.contrib import admin

from carts.models import Cart, CartItem


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product", "variant", "sku", "quantity", "unit_price")
    readonly_fields = ("sku", "unit_price")
    raw_id_fields = ("product", "variant")


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "coupon", "last_activity_at", "expires_at", "created_at")
    list_filter = ("created_at",)
    search_fields = ("id", "user__username", "user__email")
    readonly_fields = ("id", "token", "last_activity_at", "expires_at", "created_at", "updated_at")
    inlines = [CartItemInline]
