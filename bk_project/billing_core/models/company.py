from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager, TenantUserManager


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant: every party, item, document and payment belongs to one."""
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=80, unique=True)

    gst_number = models.CharField(max_length=15, blank=True, default="")
    # two-digit GST state code, the basis for any future inter-state (IGST) logic
    state_code = models.CharField(max_length=2, blank=True, default="")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="owned_companies",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


# ---------- Custom User ----------
class User(AbstractUser):
    # company used when the request does not pick one explicitly
    default_company = models.ForeignKey(
        "Company",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_users",
    )
    phone = models.CharField(max_length=32, blank=True)

    objects = TenantUserManager()

    class Meta:
        indexes = [models.Index(fields=["default_company"],
                                name="user_default_company_idx")]

    def __str__(self):
        return self.get_full_name() or self.username


# ---------- Membership ----------
class CompanyMembership(models.Model):
    ROLE_CHOICES = [
        ("owner", "Owner"),
        ("admin", "Admin"),
        ("accountant", "Accountant"),
        ("staff", "Staff"),
        ("viewer", "Viewer"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES,
                            default="viewer")
    # suspend access without deleting the row
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"], name="uq_user_company_membership"
            ),
        ]
        indexes = [models.Index(fields=["company", "user"],
                                name="membership_company_user_idx")]

    def __str__(self):
        return f"{self.user} @ {self.company} ({self.role})"

    def clean(self):
        if self.role == "owner" and not self.is_active:
            raise ValidationError("An owner membership cannot be suspended.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
