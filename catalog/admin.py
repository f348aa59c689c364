from django.contrib import admin

from .models import Product, ProductVariant


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ("sku", "title", "size", "color", "price", "is_default", "is_active")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "base_price", "is_available", "is_archived", "created_at")
    list_filter = ("is_available", "is_archived")
    search_fields = ("sku", "name")
    readonly_fields = ("id", "created_at", "updated_at")
    inlines = [ProductVariantInline]
