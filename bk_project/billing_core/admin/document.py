from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from billing_core.context import TenantContext
from billing_core.exceptions import BusinessRuleError
from billing_core.models import Document, DocumentLine, PaymentHistoryEntry
from billing_core.services.documents import convert_to_invoice

from .mixins import TenantAdminMixin


class DocumentLineInline(admin.TabularInline):
    """Line snapshots are written by the builder only."""
    model = DocumentLine
    extra = 0
    can_delete = False
    fields = ("line_number", "item_name", "quantity", "unit_price",
              "discount_percent", "cgst_rate", "sgst_rate", "igst_rate",
              "taxable_amount", "tax_amount", "line_amount")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class PaymentHistoryInline(admin.TabularInline):
    model = PaymentHistoryEntry
    extra = 0
    can_delete = False
    fields = ("paid_on", "amount", "method", "reference", "payment", "notes")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Document)
class DocumentAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("number", "doc_type", "party", "document_date", "status",
                    "final_total", "paid_amount", "pending_amount",
                    "payment_status", "is_converted")
    list_filter = ("doc_type", "status", "payment_status", "is_converted")
    search_fields = ("number", "party__name", "party__phone_number")
    date_hierarchy = "document_date"
    inlines = [DocumentLineInline, PaymentHistoryInline]
    readonly_fields = (
        "number", "doc_type", "subtotal", "discount_total", "taxable_total",
        "cgst_total", "sgst_total", "igst_total", "tax_total", "round_off",
        "final_total", "paid_amount", "advance_amount", "pending_amount",
        "payment_status", "due_date", "is_converted", "converted_document",
        "source_document", "converted_at", "converted_by", "approved_by",
        "approved_at", "created_by", "last_modified_by",
    )
    actions = ["convert_selected"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("party")

    @admin.action(description="Convert selected orders to invoices")
    def convert_selected(self, request, queryset):
        converted = 0
        for order in queryset:
            ctx = TenantContext(company=order.company, user=request.user)
            try:
                invoice = convert_to_invoice(ctx, order.pk)
            except (BusinessRuleError, ValidationError) as exc:
                self.message_user(request, f"{order.number}: {exc}",
                                  level=messages.ERROR)
                continue
            converted += 1
            self.message_user(request, f"{order.number} -> {invoice.number}")
        self.message_user(request, f"Converted {converted} order(s).")
