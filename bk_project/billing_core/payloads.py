"""
Wire adapter.

Requests from older clients carry several names for the same value
(itemName/productName, price/pricePerUnit, mobile/phoneNumber/...). They are
read here, once, into the canonical service arguments. Responses always use
one camelCase name per concept.
"""
import json
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils.dateparse import parse_date as _parse_iso_date

from . import doctypes
from .services.documents import LineRequest
from .services.tax import to_decimal

PHONE_KEYS = ("mobile", "phoneNumber", "phone", "contactNumber")

INCLUSIVE_MODES = {"with-tax", "with_tax", "include", "inclusive"}
EXCLUSIVE_MODES = {"without-tax", "without_tax", "exclude", "exclusive"}

# family -> role the party plays and the id/name/phone keys it may use
FAMILY_ROLES = {
    "sales-orders": "customer",
    "sales": "customer",
    "purchase-orders": "supplier",
    "purchases": "supplier",
}

ROLE_KEYS = {
    "customer": {"id": ("customerId", "customer", "partyId", "party"),
                 "name": ("customerName", "partyName", "name"),
                 "phone": ("customerPhone", "customerMobile")},
    "supplier": {"id": ("supplierId", "supplier", "partyId", "party"),
                 "name": ("supplierName", "partyName", "name"),
                 "phone": ("supplierPhone", "supplierMobile")},
}


# ---------- request parsing ----------
def parse_json(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Request body is not valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def pick(data, *keys, default=None):
    """First key present with a usable value."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return default


def parse_decimal(value, field, default=None):
    try:
        return to_decimal(value, default=default)
    except ValueError:
        raise ValidationError({field: f"{value!r} is not a number"})


def parse_date(value, field):
    if value in (None, ""):
        return None
    text = str(value)
    try:
        parsed = _parse_iso_date(text[:10])
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({field: f"{value!r} is not an ISO date"})
    return parsed


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_tax_inclusive(data, default=False):
    mode = pick(data, "taxMode", "priceType", "gstMode")
    if mode is not None:
        mode = str(mode).strip().lower()
        if mode in INCLUSIVE_MODES:
            return True
        if mode in EXCLUSIVE_MODES:
            return False
        raise ValidationError({"taxMode": f"Unknown tax mode {mode!r}"})
    flag = pick(data, "taxInclusive", "priceIncludesTax", "includesTax")
    if flag is None:
        return default
    return parse_bool(flag)


def parse_int(value, field, default=None):
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: f"{value!r} is not an integer"})


def line_from_payload(data, index):
    if not isinstance(data, dict):
        raise ValidationError({f"items[{index}]": "Must be an object"})
    has_mode = any(k in data for k in (
        "taxMode", "priceType", "gstMode",
        "taxInclusive", "priceIncludesTax", "includesTax"))
    return LineRequest(
        name=pick(data, "name", "itemName", "productName", default=""),
        quantity=parse_decimal(pick(data, "quantity", "qty"), "quantity"),
        unit_price=parse_decimal(
            pick(data, "unitPrice", "price", "pricePerUnit", "rate"),
            "unitPrice"),
        discount_percent=parse_decimal(
            pick(data, "discountPercent", "discountPercentage", "discount"),
            "discountPercent"),
        discount_amount=parse_decimal(
            pick(data, "discountAmount"), "discountAmount"),
        gst_rate=parse_decimal(pick(data, "gstRate", "taxRate"), "gstRate"),
        cgst_rate=parse_decimal(pick(data, "cgstRate"), "cgstRate"),
        sgst_rate=parse_decimal(pick(data, "sgstRate"), "sgstRate"),
        igst_rate=parse_decimal(pick(data, "igstRate"), "igstRate"),
        tax_inclusive=parse_tax_inclusive(data) if has_mode else None,
        item_id=parse_int(pick(data, "itemId", "productId", "item"), "itemId"),
        item_code=pick(data, "itemCode", "productCode", default=""),
        hsn_code=pick(data, "hsnCode", "hsn", default=""),
        unit=pick(data, "unit", default=""),
    )


def party_fields(data, role):
    keys = ROLE_KEYS[role]
    return {
        "party_id": parse_int(pick(data, *keys["id"]), "partyId"),
        "name": pick(data, *keys["name"], default=""),
        "phone": pick(data, *(keys["phone"] + PHONE_KEYS), default=""),
        "email": pick(data, "email", "customerEmail", "supplierEmail",
                      default=""),
        "gst_number": pick(data, "gstNumber", "gstin", default=""),
        "role": role,
    }


def document_request(data, family):
    """(doc_type, party fields, build_document kwargs) for a create."""
    doc_type = pick(data, "docType", "documentType", "orderType",
                    default=doctypes.FAMILY_DEFAULT_TYPE[family])
    if doc_type not in doctypes.FAMILIES[family]:
        raise ValidationError(
            {"docType": f"{doc_type!r} is not valid for {family}"})

    items = pick(data, "items", "lineItems", default=[])
    if not isinstance(items, list):
        raise ValidationError({"items": "Must be a list"})

    round_off = pick(data, "roundOff", "roundOffValue")
    kwargs = {
        "lines": [line_from_payload(item, i) for i, item in enumerate(items)],
        "document_date": parse_date(
            pick(data, "documentDate", "orderDate", "invoiceDate",
                 "quotationDate", "date"), "documentDate"),
        "valid_until": parse_date(
            pick(data, "validUntil", "validity"), "validUntil"),
        "delivery_date": parse_date(
            pick(data, "deliveryDate", "expectedDeliveryDate"),
            "deliveryDate"),
        "tax_inclusive": parse_tax_inclusive(data),
        "gst_enabled": parse_bool(pick(data, "gstEnabled"), default=True),
        "round_off_enabled": parse_bool(
            pick(data, "roundOffEnabled"), default=False),
        "round_off": parse_decimal(round_off, "roundOff"),
        "payment_method": pick(data, "paymentMethod", "paymentType",
                               default="credit"),
        "paid_amount": parse_decimal(
            pick(data, "paidAmount", "amountPaid"), "paidAmount"),
        "advance_amount": parse_decimal(
            pick(data, "advanceAmount", "advance"), "advanceAmount"),
        "credit_days": parse_int(pick(data, "creditDays"), "creditDays"),
        "number": pick(data, "number", "orderNumber", "invoiceNumber"),
        "notes": pick(data, "notes", "description", default=""),
    }
    return doc_type, party_fields(data, FAMILY_ROLES[family]), kwargs


def payment_request(data, payment_type):
    role = "customer" if payment_type == "payment_in" else "supplier"
    amount = parse_decimal(pick(data, "amount"), "amount")
    if amount is None:
        raise ValidationError({"amount": "Amount is required"})
    kwargs = {
        "amount": amount,
        "method": pick(data, "paymentMethod", "method", "paymentMode",
                       default="cash"),
        "payment_date": parse_date(
            pick(data, "paymentDate", "date"), "paymentDate"),
        "reference": pick(data, "reference", "referenceNumber",
                          default=""),
        "notes": pick(data, "notes", "description", default=""),
        "document_id": parse_int(
            pick(data, "documentId", "invoiceId", "orderId"), "documentId"),
    }
    return party_fields(data, role), kwargs


# ---------- responses ----------
def money(value):
    # floats only at the wire
    return float(value if value is not None else Decimal("0.00"))


def iso(value):
    return value.isoformat() if value is not None else None


def party_to_dict(party):
    return {
        "id": party.pk,
        "name": party.name,
        "partyType": party.party_type,
        "phoneNumber": party.phone_number,
        "email": party.email,
        "gstNumber": party.gst_number,
        "currentBalance": money(party.current_balance),
    }


def line_to_dict(line):
    return {
        "lineNumber": line.line_number,
        "itemId": line.item_id,
        "itemName": line.item_name,
        "itemCode": line.item_code,
        "hsnCode": line.hsn_code,
        "unit": line.unit,
        "quantity": float(line.quantity),
        "unitPrice": money(line.unit_price),
        "discountPercent": money(line.discount_percent),
        "taxInclusive": line.tax_inclusive,
        "cgstRate": float(line.cgst_rate),
        "sgstRate": float(line.sgst_rate),
        "igstRate": float(line.igst_rate),
        "baseAmount": money(line.base_amount),
        "discountAmount": money(line.discount_amount),
        "taxableAmount": money(line.taxable_amount),
        "cgstAmount": money(line.cgst_amount),
        "sgstAmount": money(line.sgst_amount),
        "igstAmount": money(line.igst_amount),
        "taxAmount": money(line.tax_amount),
        "itemAmount": money(line.line_amount),
    }


def document_to_dict(document, with_lines=True):
    data = {
        "id": document.pk,
        "docType": document.doc_type,
        "number": document.number,
        "status": document.status,
        "party": party_to_dict(document.party),
        "documentDate": iso(document.document_date),
        "validUntil": iso(document.valid_until),
        "deliveryDate": iso(document.delivery_date),
        "taxInclusive": document.tax_inclusive,
        "gstEnabled": document.gst_enabled,
        "totals": {
            "subtotal": money(document.subtotal),
            "discountTotal": money(document.discount_total),
            "taxableTotal": money(document.taxable_total),
            "cgstTotal": money(document.cgst_total),
            "sgstTotal": money(document.sgst_total),
            "igstTotal": money(document.igst_total),
            "taxTotal": money(document.tax_total),
            "roundOff": money(document.round_off),
            "finalTotal": money(document.final_total),
        },
        "payment": {
            "method": document.payment_method,
            "status": document.payment_status,
            "paidAmount": money(document.paid_amount),
            "advanceAmount": money(document.advance_amount),
            "pendingAmount": money(document.pending_amount),
            "balanceAmount": money(document.balance_amount),
            "creditDays": document.credit_days,
            "dueDate": iso(document.due_date),
            "paymentDate": iso(document.payment_date),
        },
        "isConverted": document.is_converted,
        "convertedDocumentId": document.converted_document_id,
        "sourceDocumentId": document.source_document_id,
        "convertedAt": iso(document.converted_at),
        "notes": document.notes,
        "createdAt": iso(document.created_at),
    }
    if with_lines:
        data["items"] = [line_to_dict(line) for line in document.lines.all()]
    return data


def allocation_to_dict(allocation):
    return {
        "documentId": allocation.document_id,
        "documentNumber": allocation.document.number,
        "documentTotal": money(allocation.document_total),
        "allocatedAmount": money(allocation.allocated_amount),
        "remainingAmount": money(allocation.remaining_amount),
        "isFullyPaid": allocation.is_fully_paid,
    }


def payment_to_dict(payment):
    return {
        "id": payment.pk,
        "paymentNumber": payment.payment_number,
        "paymentType": payment.payment_type,
        "direction": payment.direction,
        "party": party_to_dict(payment.party),
        "amount": money(payment.amount),
        "paymentMethod": payment.payment_method,
        "paymentDate": iso(payment.payment_date),
        "reference": payment.reference,
        "notes": payment.notes,
        "status": payment.status,
        "partyBalanceBefore": money(payment.party_balance_before),
        "partyBalanceAfter": money(payment.party_balance_after),
        "cancelReason": payment.cancel_reason,
        "cancelledAt": iso(payment.cancelled_at),
        "linkedDocuments": [allocation_to_dict(a)
                            for a in payment.allocations.all()],
    }
