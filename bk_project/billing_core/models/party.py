import re
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..phones import normalize_phone
from .company import Company

PARTY_TYPES = [
    ("customer", "Customer"),
    ("vendor", "Vendor"),
    ("supplier", "Supplier"),
    ("both", "Both"),
]

GST_TYPES = [
    ("unregistered", "Unregistered"),
    ("regular", "Regular"),
    ("composition", "Composition"),
]

GSTIN_PATTERN = re.compile(
    r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


# ---------- Party (customer / supplier) ----------
class Party(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # required classification, never null
    party_type = models.CharField(max_length=10, choices=PARTY_TYPES,
                                  default="customer")
    name = models.CharField(max_length=100)

    # one canonical phone field, stored in national 10-digit form
    phone_number = models.CharField(max_length=15, blank=True, default="")
    email = models.EmailField(blank=True, default="")

    gst_number = models.CharField(max_length=15, blank=True, default="")
    gst_type = models.CharField(max_length=15, choices=GST_TYPES,
                                default="unregistered")

    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # signed running ledger, see services.payments for the sign convention
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # parties are deactivated, never deleted
    is_active = models.BooleanField(default=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "parties"
        indexes = [
            models.Index(fields=["company", "name"], name="party_company_name_idx"),
            models.Index(fields=["company", "phone_number"],
                         name="party_company_phone_idx"),
            models.Index(fields=["company", "party_type"],
                         name="party_company_type_idx"),
        ]
        constraints = [
            # phone unique per company among active parties that have one
            models.UniqueConstraint(
                fields=["company", "phone_number"],
                condition=models.Q(is_active=True) & ~models.Q(phone_number=""),
                name="uq_company_active_party_phone",
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def is_customer(self):
        return self.party_type in ("customer", "both")

    @property
    def is_supplier(self):
        return self.party_type in ("supplier", "vendor", "both")

    def plays(self, role):
        """role is "customer" or "supplier"."""
        return self.is_customer if role == "customer" else self.is_supplier

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "Party name is required"})
        if self.gst_number and not GSTIN_PATTERN.match(self.gst_number):
            raise ValidationError(
                {"gst_number": "Please provide a valid GST number format"})
        if self.opening_balance is not None and self.opening_balance < 0:
            raise ValidationError(
                {"opening_balance": "Opening balance cannot be negative"})

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.phone_number = normalize_phone(self.phone_number)
        self.gst_number = (self.gst_number or "").strip().upper()
        self.email = (self.email or "").strip().lower()
        if self._state.adding:
            # ledger starts where the books say it starts
            self.current_balance = self.opening_balance or Decimal("0.00")
        self.full_clean()
        return super().save(*args, **kwargs)
