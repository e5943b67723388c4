from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from .company import Company
from .document import PAYMENT_METHODS, Document
from .party import Party

PAYMENT_TYPES = [
    ("payment_in", "Payment in"),
    ("payment_out", "Payment out"),
]

PAYMENT_STATUS = [
    ("pending", "Pending"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("failed", "Failed"),
]


# ---------- Payment (cash movement) ----------
class Payment(models.Model):
    """Money received from (payment_in) or paid to (payment_out) a party.

    Invariant: party_balance_after == party_balance_before + amount for
    payment_in, - amount for payment_out.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    payment_number = models.CharField(max_length=64)
    payment_type = models.CharField(max_length=12, choices=PAYMENT_TYPES)
    party = models.ForeignKey(Party, on_delete=models.PROTECT,
                              related_name="payments")

    # always positive; direction comes from payment_type
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS,
                                      default="cash")
    payment_date = models.DateField(default=timezone.localdate)
    reference = models.CharField(max_length=200, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    party_balance_before = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    party_balance_after = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=10, choices=PAYMENT_STATUS,
                              default="completed")
    cancel_reason = models.TextField(blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "party", "payment_date"],
                         name="pay_company_party_date_idx"),
            models.Index(fields=["company", "payment_type", "payment_date"],
                         name="pay_company_type_date_idx"),
            models.Index(fields=["company", "status"], name="pay_company_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "payment_number"],
                name="uq_company_payment_number",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.payment_number} ({self.amount})"

    @property
    def direction(self):
        return "received" if self.payment_type == "payment_in" else "paid"

    @property
    def balance_effect(self):
        """Signed change this payment makes to the party balance."""
        if self.payment_type == "payment_in":
            return self.amount
        return -self.amount

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "Amount must be greater than 0"})
        if self.party_id and self.party.company_id != self.company_id:
            raise ValidationError("Party must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class PaymentAllocation(models.Model):
    """Part of a payment settling one document (the linked-document record)."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE,
                                related_name="allocations")
    document = models.ForeignKey(Document, on_delete=models.CASCADE,
                                 related_name="allocations")

    # snapshot at allocation time
    document_total = models.DecimalField(max_digits=18, decimal_places=2)
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=2)
    remaining_amount = models.DecimalField(max_digits=18, decimal_places=2)
    is_fully_paid = models.BooleanField(default=False)
    allocated_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["payment", "document"], name="uq_payment_document"
            ),
            models.CheckConstraint(
                condition=models.Q(allocated_amount__gt=0)
                & models.Q(remaining_amount__gte=0),
                name="allocation_amounts_valid",
            ),
        ]

    def __str__(self):
        return (f"{self.payment.payment_number} -> {self.document.number} "
                f"({self.allocated_amount})")

    def clean(self):
        if self.payment.company_id != self.company_id or \
                self.document.company_id != self.company_id:
            raise ValidationError(
                "Payment and document must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
