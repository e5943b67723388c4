from django.conf import settings
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Audit trail ----------
class AuditLog(models.Model):
    company = models.ForeignKey(Company, null=True, blank=True,
                                on_delete=models.SET_NULL)
    # null for automated actions (celery, management commands)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(max_length=50)  # create, add_payment, cancel...
    object_type = models.CharField(max_length=100)  # "Document", "Payment"
    object_id = models.CharField(max_length=100)
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "created_at"],
                         name="audit_company_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
        ]

    def __str__(self):
        return (f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} "
                f"{self.action} {self.object_type}({self.object_id})")
