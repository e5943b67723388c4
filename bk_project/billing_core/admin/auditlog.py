from django.contrib import admin

from billing_core.models import AuditLog

from .readonly import ReadOnlyAdmin


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("id", "company", "user", "action", "object_type",
                    "object_id", "created_at")
    search_fields = ("object_type", "object_id", "user__username")
    list_filter = ("action", "object_type", "created_at")

    # fetch everything in one SQL join
    def get_queryset(self, request):
        return super().get_queryset(request).select_related("company", "user")
