"""
Document aggregate: build, status changes, order -> invoice conversion.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from .. import doctypes
from ..exceptions import BusinessRuleError, InvalidLineItem, PaymentExceedsBalance
from ..models import (Document, DocumentLine, Item, PaymentAllocation,
                      PaymentHistoryEntry)
from .audit_helper import log_action
from .numbering import generate_document_number
from .payments import (DIRECTION_PAYMENT_TYPE, _apply_to_document,
                       _record_payment, apply_payment_state)
from .tax import ZERO, compute_line, compute_totals, round2, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class LineRequest:
    """One requested line, already translated from the wire names."""
    name: str = ""
    quantity: object = None
    unit_price: object = None
    discount_percent: object = None
    discount_amount: object = None
    gst_rate: object = None
    cgst_rate: object = None
    sgst_rate: object = None
    igst_rate: object = None
    # None -> document default
    tax_inclusive: Optional[bool] = None
    item_id: Optional[int] = None
    item_code: str = ""
    hsn_code: str = ""
    unit: str = ""


def _default_credit_days():
    return getattr(settings, "BILLING", {}).get("DEFAULT_CREDIT_DAYS", 0)


def _resolve_item(company, line):
    if line.item_id in (None, ""):
        return None
    try:
        return Item.objects.for_company(company).get(pk=line.item_id)
    except (Item.DoesNotExist, ValueError):
        raise ValidationError({"item": f"Item {line.item_id} not found"})


def _price_lines(company, lines, *, tax_inclusive, gst_enabled):
    """Validate and price every line. Returns [(request, item, amounts)]."""
    if not lines:
        raise InvalidLineItem("At least one line item is required")

    priced = []
    for index, line in enumerate(lines, start=1):
        item = _resolve_item(company, line)
        name = (line.name or "").strip() or (item.name if item else "")
        if not name:
            raise InvalidLineItem(f"Line {index}: item name is required",
                                  code="name")
        # the snapshot stores paise, so the amounts are computed from paise too
        try:
            unit_price = to_decimal(line.unit_price, default=None)
        except ValueError as exc:
            raise InvalidLineItem(f"Line {index}: {exc}", code="unit_price")
        if unit_price is not None:
            unit_price = round2(unit_price)
        inclusive = tax_inclusive if line.tax_inclusive is None \
            else line.tax_inclusive

        rates = {}
        if gst_enabled:
            gst_rate = line.gst_rate
            if gst_rate in (None, "") and item is not None:
                gst_rate = item.gst_rate
            rates = {"gst_rate": gst_rate, "cgst_rate": line.cgst_rate,
                     "sgst_rate": line.sgst_rate, "igst_rate": line.igst_rate}
        try:
            amounts = compute_line(
                line.quantity, unit_price,
                discount_percent=line.discount_percent,
                discount_amount=line.discount_amount,
                tax_inclusive=inclusive,
                **rates,
            )
        except InvalidLineItem as exc:
            raise InvalidLineItem(f"Line {index}: {exc.messages[0]}",
                                  code=exc.code)
        line.name = name
        line.unit_price = unit_price
        line.tax_inclusive = inclusive
        priced.append((line, item, amounts))
    return priced


def _write_lines(document, priced):
    for number, (line, item, amounts) in enumerate(priced, start=1):
        DocumentLine.objects.create(
            company=document.company,
            document=document,
            line_number=number,
            item=item,
            item_name=line.name,
            item_code=line.item_code or (item.item_code or "" if item else ""),
            hsn_code=line.hsn_code or (item.hsn_code if item else ""),
            unit=line.unit or (item.unit if item else ""),
            quantity=to_decimal(line.quantity),
            unit_price=round2(line.unit_price),
            discount_percent=round2(line.discount_percent),
            tax_inclusive=bool(line.tax_inclusive),
            cgst_rate=amounts.rates.cgst,
            sgst_rate=amounts.rates.sgst,
            igst_rate=amounts.rates.igst,
            base_amount=amounts.base_amount,
            discount_amount=amounts.discount_amount,
            taxable_amount=amounts.taxable_amount,
            cgst_amount=amounts.cgst,
            sgst_amount=amounts.sgst,
            igst_amount=amounts.igst,
            tax_amount=amounts.total_tax,
            line_amount=amounts.item_amount,
        )


# ----------------------------
# Stock side effects
# ----------------------------
def _adjust_stock(document):
    """
    Purchase invoices add line quantities to stock, sales invoices remove
    them. Each item is updated in its own savepoint; a failure is logged
    and the document stands.
    """
    if not document.is_invoice:
        return
    sign = 1 if document.direction == doctypes.PURCHASE else -1

    for line in document.lines.exclude(item__isnull=True):
        try:
            with transaction.atomic():
                item = Item.objects.select_for_update().get(pk=line.item_id)
                if item.is_service:
                    continue
                item.current_stock = item.current_stock + sign * line.quantity
                item.save(update_fields=["current_stock", "updated_at"])
        except (ValidationError, DatabaseError) as exc:
            logger.warning(
                "Stock update skipped for item %s on %s: %s",
                line.item_id, document.number, exc,
            )


# ----------------------------
# Build
# ----------------------------
def build_document(ctx, doc_type, party, lines: List[LineRequest], *,
                   document_date=None, valid_until=None, delivery_date=None,
                   tax_inclusive=False, gst_enabled=True,
                   round_off_enabled=False, round_off=None,
                   payment_method="credit", paid_amount=None,
                   advance_amount=None, credit_days=None, number=None,
                   notes=""):
    """
    Create a complete order or invoice.
    Workflow:
        1. Validate and price every line, sum the totals.
        2. Apply round-off when enabled.
        3. Payment intent: paid = max(paid, advance), never above the total.
        4. Number (generated unless supplied), persist header and lines.
        5. An initial payment creates the companion ledger payment.
        6. Invoices move stock.
    """
    if doc_type not in doctypes.DOC_PREFIXES:
        raise ValidationError({"doc_type": f"Unknown document type {doc_type}"})
    if party.company_id != ctx.company.pk:
        raise ValidationError("Party must belong to the same company.")

    priced = _price_lines(ctx.company, lines, tax_inclusive=tax_inclusive,
                          gst_enabled=gst_enabled)
    totals = compute_totals(
        (amounts for _, _, amounts in priced),
        round_off_enabled=round_off_enabled,
        round_off=round_off,
    )
    if totals.final_total < 0:
        raise ValidationError(
            {"round_off": f"Round-off {totals.round_off} takes the total "
                          f"below zero ({totals.final_total})"})

    advance = round2(advance_amount)
    paid = max(round2(paid_amount), advance)
    if paid < 0:
        raise ValidationError({"paid_amount": "Paid amount cannot be negative"})
    if paid > totals.final_total:
        raise PaymentExceedsBalance(
            f"Paid amount {paid} exceeds the total of {totals.final_total}")

    document_date = document_date or timezone.localdate()
    if credit_days in (None, ""):
        credit_days = _default_credit_days()

    with transaction.atomic():
        document = Document(
            company=ctx.company,
            doc_type=doc_type,
            number=number or generate_document_number(
                ctx.company, doc_type, document_date),
            party=party,
            document_date=document_date,
            valid_until=valid_until,
            delivery_date=delivery_date,
            status=doctypes.initial_status(doc_type),
            tax_inclusive=tax_inclusive,
            gst_enabled=gst_enabled,
            subtotal=totals.subtotal,
            discount_total=totals.discount_total,
            taxable_total=totals.taxable_total,
            cgst_total=totals.cgst_total,
            sgst_total=totals.sgst_total,
            igst_total=totals.igst_total,
            tax_total=totals.tax_total,
            round_off=totals.round_off,
            final_total=totals.final_total,
            payment_method=payment_method or "credit",
            advance_amount=advance,
            credit_days=int(credit_days),
            notes=notes or "",
            created_by=ctx.actor,
            last_modified_by=ctx.actor,
        )
        apply_payment_state(document)
        document.save()
        _write_lines(document, priced)

        if paid > 0:
            payment = _record_payment(
                ctx,
                party_id=party.pk,
                payment_type=DIRECTION_PAYMENT_TYPE[document.direction],
                amount=paid,
                method=document.payment_method,
                payment_date=document_date,
                notes=f"Initial payment for {document.number}",
            )
            _apply_to_document(ctx, document, payment, paid,
                               method=document.payment_method,
                               paid_on=document_date)

        _adjust_stock(document)

        log_action(
            action="create_document",
            instance=document,
            user=ctx.actor,
            changes={"Number": document.number,
                     "Type": doc_type,
                     "Final total": str(document.final_total),
                     "Paid": str(document.paid_amount)},
        )
    return document


# ----------------------------
# Status
# ----------------------------
def update_status(ctx, document_id, status, reason=""):
    with transaction.atomic():
        document = Document.objects.select_for_update().get(
            pk=document_id, company=ctx.company)
        previous = document.transition_to(status, user=ctx.actor,
                                          reason=reason)
        log_action(
            action="status_change",
            instance=document,
            user=ctx.actor,
            changes={"From": previous, "To": status, "Reason": reason},
        )
    return document


# ----------------------------
# Conversion
# ----------------------------
def _transfer_allocations(ctx, order, invoice, limit):
    """Point the order's completed payments at the invoice, up to `limit`."""
    remaining_total = invoice.final_total
    allocations = (order.allocations.select_related("payment")
                   .filter(payment__status="completed")
                   .order_by("allocated_at", "id"))
    for allocation in allocations:
        if limit <= 0:
            break
        amount = min(allocation.allocated_amount, limit)
        try:
            with transaction.atomic():
                remaining_total = round2(remaining_total - amount)
                PaymentAllocation.objects.create(
                    company=invoice.company,
                    payment=allocation.payment,
                    document=invoice,
                    document_total=invoice.final_total,
                    allocated_amount=amount,
                    remaining_amount=max(remaining_total, ZERO),
                    is_fully_paid=remaining_total <= 0,
                )
                PaymentHistoryEntry.objects.create(
                    company=invoice.company,
                    document=invoice,
                    payment=allocation.payment,
                    amount=amount,
                    method=allocation.payment.payment_method,
                    reference=allocation.payment.reference,
                    paid_on=allocation.payment.payment_date,
                    notes=f"Advance transferred from {order.number}",
                    created_by=ctx.actor,
                )
        except (ValidationError, DatabaseError) as exc:
            remaining_total = round2(remaining_total + amount)
            logger.warning(
                "Advance transfer skipped for payment %s (%s -> %s): %s",
                allocation.payment.payment_number, order.number,
                invoice.number, exc,
            )
            continue
        limit = round2(limit - amount)


def convert_to_invoice(ctx, order_id, invoice_date=None,
                       transfer_advance=True):
    """
    Turn an order into an invoice of the same direction.
    Workflow:
        1. Lock the order; only live, unconverted orders qualify.
        2. Create the invoice with copied totals and line snapshots.
        3. Carry the advance over (paid = advance) when asked to.
        4. Mark the order converted and link both ways.
        5. Re-point completed payments, then move stock.
    """
    with transaction.atomic():
        order = Document.objects.select_for_update().get(
            pk=order_id, company=ctx.company)
        if not order.is_order:
            raise BusinessRuleError(f"{order.number} is not an order")
        order.ensure_editable()
        if order.status == "rejected":
            raise BusinessRuleError(
                f"{order.number} was rejected and cannot be converted")

        invoice_type = doctypes.invoice_type_for(order.doc_type)
        invoice_date = invoice_date or timezone.localdate()
        transferred = round2(order.advance_amount) if transfer_advance else ZERO

        invoice = Document(
            company=order.company,
            doc_type=invoice_type,
            number=generate_document_number(order.company, invoice_type,
                                            invoice_date),
            party=order.party,
            document_date=invoice_date,
            status=doctypes.initial_status(invoice_type),
            tax_inclusive=order.tax_inclusive,
            gst_enabled=order.gst_enabled,
            subtotal=order.subtotal,
            discount_total=order.discount_total,
            taxable_total=order.taxable_total,
            cgst_total=order.cgst_total,
            sgst_total=order.sgst_total,
            igst_total=order.igst_total,
            tax_total=order.tax_total,
            round_off=order.round_off,
            final_total=order.final_total,
            payment_method=order.payment_method,
            paid_amount=transferred,
            advance_amount=transferred,
            credit_days=order.credit_days,
            payment_date=invoice_date if transferred > 0 else None,
            source_document=order,
            notes=f"Converted from {order.number}",
            created_by=ctx.actor,
            last_modified_by=ctx.actor,
        )
        apply_payment_state(invoice)
        invoice.save()

        for line in order.lines.all():
            line.pk = None
            line._state.adding = True
            line.document = invoice
            line.save()

        previous = order.status
        order.is_converted = True
        order.converted_document = invoice
        order.converted_at = timezone.now()
        order.converted_by = ctx.actor
        order.status = doctypes.converted_status(order.doc_type)
        order.last_modified_by = ctx.actor
        order.save()

        if transferred > 0:
            _transfer_allocations(ctx, order, invoice, transferred)

        _adjust_stock(invoice)

        log_action(
            action="convert",
            instance=order,
            user=ctx.actor,
            changes={"From": previous, "To": order.status,
                     "Invoice": invoice.number,
                     "Advance transferred": str(transferred)},
        )
        log_action(
            action="create_document",
            instance=invoice,
            user=ctx.actor,
            changes={"Number": invoice.number, "Type": invoice_type,
                     "Source": order.number},
        )
    return invoice


# ----------------------------
# Listing
# ----------------------------
def family_queryset(ctx, family):
    try:
        doc_types = doctypes.FAMILIES[family]
    except KeyError:
        raise ValidationError({"family": f"Unknown document family {family}"})
    return Document.objects.for_company(ctx.company).of_types(doc_types)


def get_document(ctx, family, document_id):
    return (family_queryset(ctx, family)
            .select_related("party")
            .prefetch_related("lines")
            .get(pk=document_id))


def list_documents(ctx, family, *, status=None, party_id=None,
                   doc_type=None, date_from=None, date_to=None):
    qs = family_queryset(ctx, family).select_related("party")
    if status:
        qs = qs.filter(status=status)
    if party_id:
        qs = qs.filter(party_id=party_id)
    if doc_type:
        qs = qs.filter(doc_type=doc_type)
    if date_from:
        qs = qs.filter(document_date__gte=date_from)
    if date_to:
        qs = qs.filter(document_date__lte=date_to)
    return qs.order_by("-document_date", "-id")


def summarize(qs):
    """Totals over a document queryset; empty sets give zeros."""
    money = DecimalField(max_digits=18, decimal_places=2)
    zero = Value(Decimal("0.00"), output_field=money)
    sums = qs.aggregate(
        total=Coalesce(Sum("final_total"), zero, output_field=money),
        paid=Coalesce(Sum("paid_amount"), zero, output_field=money),
        pending=Coalesce(Sum("pending_amount"), zero, output_field=money),
    )
    sums["count"] = qs.count()
    return sums
