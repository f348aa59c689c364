# inventory/admin.py

from django.contrib import admin

from inventory.models import InventoryRecord


@admin.register(InventoryRecord)
class InventoryRecordAdmin(admin.ModelAdmin):
    """
    On-hand quantity is editable for manual corrections.
    reserved is owned by the ledger and never edited by hand.
    """

    list_display = (
        "product",
        "variant",
        "quantity",
        "reserved",
        "available",
        "is_tracked",
        "reorder_threshold",
        "reorder_due",
        "updated_at",
    )
    list_filter = ("is_tracked",)
    search_fields = ("product__sku", "product__name", "variant__sku")
    readonly_fields = ("id", "reserved", "updated_at")
    raw_id_fields = ("product", "variant")

    @admin.display(boolean=True, description="Reorder")
    def reorder_due(self, obj):
        return obj.needs_reorder
