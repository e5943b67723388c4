from django.contrib import admin, messages

from billing_core.context import TenantContext
from billing_core.exceptions import AlreadyCancelled
from billing_core.models import Payment, PaymentAllocation
from billing_core.services.payments import cancel_payment

from .readonly import ReadOnlyAdmin


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    can_delete = False
    fields = ("document", "document_total", "allocated_amount",
              "remaining_amount", "is_fully_paid", "allocated_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdmin):
    list_display = ("payment_number", "payment_type", "party", "amount",
                    "payment_method", "payment_date", "status",
                    "party_balance_after")
    list_filter = ("payment_type", "status", "payment_method")
    search_fields = ("payment_number", "party__name", "reference")
    inlines = [PaymentAllocationInline]
    actions = ["cancel_selected"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("party")

    @admin.action(description="Cancel selected payments")
    def cancel_selected(self, request, queryset):
        for payment in queryset:
            ctx = TenantContext(company=payment.company, user=request.user)
            try:
                cancel_payment(ctx, payment.pk, reason="Cancelled from admin")
            except AlreadyCancelled as exc:
                self.message_user(request, str(exc), level=messages.WARNING)
