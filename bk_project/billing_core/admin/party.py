from django.contrib import admin

from billing_core.models import Item, Party

from .mixins import TenantAdminMixin


@admin.register(Party)
class PartyAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "name", "party_type", "phone_number", "gst_number",
                    "current_balance", "is_active")
    list_filter = ("party_type", "is_active", "gst_type")
    search_fields = ("name", "phone_number", "email", "gst_number")
    # balance only moves through payments
    readonly_fields = ("current_balance", "created_by", "created_at",
                       "updated_at")
    actions = ["deactivate"]

    # parties are never hard-deleted
    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Deactivate selected parties")
    def deactivate(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"Deactivated {updated} parties.")


@admin.register(Item)
class ItemAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "name", "item_code", "item_type", "gst_rate",
                    "sale_price", "current_stock", "stock_status")
    list_filter = ("item_type", "gst_rate", "is_active")
    search_fields = ("name", "item_code", "hsn_code")
    readonly_fields = ("buy_price_with_tax", "buy_price_without_tax",
                       "sale_price_with_tax", "sale_price_without_tax")
