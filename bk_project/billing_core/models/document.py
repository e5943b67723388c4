from datetime import date as date_cls
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .. import doctypes
from ..exceptions import DocumentLocked, InvalidStatusTransition
from ..managers import DocumentManager, TenantManager
from .company import Company
from .item import Item
from .party import Party

PAYMENT_METHODS = [
    ("cash", "Cash"),
    ("card", "Card"),
    ("upi", "UPI"),
    ("bank_transfer", "Bank Transfer"),
    ("cheque", "Cheque"),
    ("credit", "Credit"),
    ("online", "Online"),
    ("other", "Other"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("partial", "Partial"),
    ("paid", "Paid"),
    ("overdue", "Overdue"),
    ("cancelled", "Cancelled"),
]

ZERO = Decimal("0.00")


def money_field(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2,
                               default=ZERO, **kwargs)


# ---------- Commercial document (order / quotation / invoice) ----------
class Document(models.Model):
    """One row per quotation, order, proforma or invoice, sales or purchase.

    `doc_type` decides the direction, the number prefix and which status
    machine applies (see doctypes). Totals and the payment sub-aggregate are
    flattened onto the row; lines and payment history hang off it.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    doc_type = models.CharField(max_length=20,
                                choices=doctypes.DOC_TYPE_CHOICES)
    # QUO-20250917-0001, unique per company
    number = models.CharField(max_length=64)

    party = models.ForeignKey(Party, on_delete=models.PROTECT,
                              related_name="documents")

    document_date = models.DateField(default=timezone.localdate)
    valid_until = models.DateField(null=True, blank=True)
    delivery_date = models.DateField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=doctypes.STATUS_CHOICES,
                              default="draft")

    # document-level default; each line keeps its own copy
    tax_inclusive = models.BooleanField(default=False)
    gst_enabled = models.BooleanField(default=True)

    # ---- totals ----
    subtotal = money_field()
    discount_total = money_field()
    taxable_total = money_field()
    cgst_total = money_field()
    sgst_total = money_field()
    igst_total = money_field()
    tax_total = money_field()
    round_off = money_field()
    final_total = money_field()

    # ---- payment ----
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS,
                                      default="credit")
    payment_status = models.CharField(max_length=10,
                                      choices=PAYMENT_STATUS_CHOICES,
                                      default="pending")
    paid_amount = money_field()
    advance_amount = money_field()
    pending_amount = money_field()
    credit_days = models.PositiveIntegerField(default=0)
    due_date = models.DateField(null=True, blank=True)
    payment_date = models.DateField(null=True, blank=True)

    # ---- conversion (order -> invoice) ----
    is_converted = models.BooleanField(default=False)
    converted_document = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    source_document = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL,
        related_name="derived_documents",
    )
    converted_at = models.DateTimeField(null=True, blank=True)
    converted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DocumentManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "doc_type", "status"],
                         name="doc_company_type_status_idx"),
            models.Index(fields=["company", "party"], name="doc_company_party_idx"),
            models.Index(fields=["company", "document_date"],
                         name="doc_company_date_idx"),
            models.Index(fields=["payment_status", "due_date"],
                         name="doc_paystatus_due_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "number"], name="uq_company_document_number"
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0)
                & models.Q(pending_amount__gte=0),
                name="document_non_negative_payment",
            ),
        ]

    def __str__(self):
        return f"{self.get_doc_type_display()} {self.number}"

    @property
    def direction(self):
        return doctypes.direction_of(self.doc_type)

    @property
    def is_order(self):
        return self.doc_type in doctypes.ORDER_TYPES

    @property
    def is_invoice(self):
        return self.doc_type in doctypes.INVOICE_TYPES

    @property
    def balance_amount(self):
        return max(self.final_total - self.paid_amount, ZERO)

    @property
    def is_overdue(self):
        if not self.due_date or self.pending_amount <= 0:
            return False
        return timezone.localdate() > self.due_date

    def ensure_editable(self):
        """Converted and cancelled documents keep their lines and totals."""
        if self.is_converted:
            raise DocumentLocked(
                f"{self.number} was converted to an invoice and cannot be edited")
        if self.status == "cancelled":
            raise DocumentLocked(f"{self.number} is cancelled")

    def transition_to(self, new_status, user=None, reason=""):
        allowed = doctypes.transitions_for(self.doc_type)
        if self.is_converted:
            # only cancellation is left once converted
            allowed_next = ["cancelled"]
        else:
            allowed_next = allowed.get(self.status, [])

        if new_status not in allowed_next:
            raise InvalidStatusTransition(
                f"Cannot go from {self.status} to {new_status}")

        previous = self.status
        self.status = new_status
        if new_status == "confirmed":
            self.approved_by = user
            self.approved_at = timezone.now()
        elif new_status == "received":
            self.delivery_date = timezone.localdate()

        if reason:
            note = (f"Status changed from {previous} to {new_status}. "
                    f"Reason: {reason}")
            self.notes = f"{self.notes}\n{note}" if self.notes else note

        self.last_modified_by = user
        self.save()
        return previous

    def clean(self):
        if self.party_id and self.company_id:
            if self.party.company_id != self.company_id:
                raise ValidationError("Party must belong to the same company.")
        if self.valid_until and self.document_date:
            if isinstance(self.valid_until, date_cls) and \
                    self.valid_until < self.document_date:
                raise ValidationError(
                    {"valid_until": "Cannot be before the document date"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class DocumentLine(models.Model):
    """Snapshot of one line at transaction time.

    Name, price, rates and computed amounts are copied from the request, not
    read through `item`, so later item edits never rewrite history.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    document = models.ForeignKey(Document, on_delete=models.CASCADE,
                                 related_name="lines")
    line_number = models.PositiveIntegerField()

    # optional live reference, used for stock movements only
    item = models.ForeignKey(Item, null=True, blank=True,
                             on_delete=models.PROTECT, related_name="+")
    item_name = models.CharField(max_length=200)
    item_code = models.CharField(max_length=80, blank=True, default="")
    hsn_code = models.CharField(max_length=20, blank=True, default="")
    unit = models.CharField(max_length=10, blank=True, default="")

    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(max_digits=18, decimal_places=2)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2,
                                           default=ZERO)
    tax_inclusive = models.BooleanField(default=False)
    cgst_rate = models.DecimalField(max_digits=6, decimal_places=3,
                                    default=ZERO)
    sgst_rate = models.DecimalField(max_digits=6, decimal_places=3,
                                    default=ZERO)
    igst_rate = models.DecimalField(max_digits=6, decimal_places=3,
                                    default=ZERO)

    base_amount = money_field()
    discount_amount = money_field()
    taxable_amount = money_field()
    cgst_amount = money_field()
    sgst_amount = money_field()
    igst_amount = money_field()
    tax_amount = money_field()
    line_amount = money_field()

    objects = TenantManager()

    class Meta:
        ordering = ["document", "line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["document", "line_number"], name="uq_document_line_no"
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0) & models.Q(unit_price__gte=0),
                name="docline_positive_qty_price",
            ),
        ]

    def __str__(self):
        return f"{self.document.number} #{self.line_number} {self.item_name}"

    @property
    def gst_rate(self):
        return self.cgst_rate + self.sgst_rate + self.igst_rate

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise DocumentLocked("Document lines are immutable once written")
        if not self.company_id and self.document_id:
            self.company_id = self.document.company_id
        self.full_clean()
        return super().save(*args, **kwargs)


class PaymentHistoryEntry(models.Model):
    """Append-only log of money applied to a document."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    document = models.ForeignKey(Document, on_delete=models.CASCADE,
                                 related_name="payment_history")
    # companion ledger payment, when there is one
    payment = models.ForeignKey("Payment", null=True, blank=True,
                                on_delete=models.SET_NULL,
                                related_name="history_entries")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    method = models.CharField(max_length=20, choices=PAYMENT_METHODS,
                              default="cash")
    reference = models.CharField(max_length=200, blank=True, default="")
    paid_on = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        ordering = ["document", "created_at", "id"]
        verbose_name_plural = "payment history entries"

    def __str__(self):
        return f"{self.document.number}: {self.amount} via {self.method}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Payment history is append-only.")
        self.full_clean()
        return super().save(*args, **kwargs)
