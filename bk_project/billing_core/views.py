import logging
import traceback
from functools import wraps

from django.conf import settings
from django.core.exceptions import (ObjectDoesNotExist, PermissionDenied,
                                    ValidationError)
from django.db import transaction
from django.db.models import Sum
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from . import payloads
from .context import TenantContext
from .exceptions import BusinessRuleError, ConflictError
from .models import Payment
from .services import documents as document_service
from .services import payments as payment_service
from .services.parties import resolve_party
from .services.tax import ZERO

logger = logging.getLogger(__name__)


def ok(data=None, message="OK", status=200):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return JsonResponse(body, status=status)


def fail(message, status, error=None):
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return JsonResponse(body, status=status)


def _validation_errors(exc):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"non_field_errors": exc.messages}


def api_endpoint(*methods):
    """
    JSON view wrapper: allowed methods, no CSRF, and one place that turns
    exceptions into the {success, data, message, error} envelope.
    """
    def decorator(view):
        @csrf_exempt
        @require_http_methods(list(methods))
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                return view(request, *args, **kwargs)
            except ValidationError as exc:
                return fail("Validation failed", 400, _validation_errors(exc))
            except ObjectDoesNotExist as exc:
                return fail(str(exc) or "Not found", 404)
            except PermissionDenied as exc:
                return fail(str(exc) or "Permission denied", 403)
            except ConflictError as exc:
                error = getattr(exc, "tried", None) or None
                return fail(str(exc), 409, error)
            except BusinessRuleError as exc:
                return fail(str(exc), 400)
            except Exception as exc:
                logger.exception("Unhandled error in %s", view.__name__)
                error = traceback.format_exc() if settings.DEBUG else None
                return fail(str(exc) or "Internal server error", 500, error)
        return wrapper
    return decorator


# ---------- payments ----------
@api_endpoint("GET")
def payment_list(request):
    ctx = TenantContext.from_request(request)
    qs = (Payment.objects.for_company(ctx.company)
          .select_related("party")
          .prefetch_related("allocations__document"))
    party_id = request.GET.get("party")
    if party_id:
        qs = qs.filter(party_id=payloads.parse_int(party_id, "party"))
    if request.GET.get("type"):
        qs = qs.filter(payment_type=request.GET["type"])
    if request.GET.get("status"):
        qs = qs.filter(status=request.GET["status"])
    qs = qs.order_by("-payment_date", "-id")

    total = qs.aggregate(total=Sum("amount"))["total"] or ZERO
    return ok({
        "payments": [payloads.payment_to_dict(p) for p in qs],
        "count": qs.count(),
        "totalAmount": payloads.money(total),
    })


def _create_payment(request, payment_type):
    ctx = TenantContext.from_request(request)
    data = payloads.parse_json(request)
    party_fields, kwargs = payloads.payment_request(data, payment_type)
    with transaction.atomic():
        party = resolve_party(ctx, **party_fields)
        payment = payment_service.create_payment(
            ctx, payment_type, party, **kwargs)
    return ok(payloads.payment_to_dict(payment),
              f"Payment {payment.payment_number} recorded", status=201)


@api_endpoint("POST")
def pay_in(request):
    return _create_payment(request, "payment_in")


@api_endpoint("POST")
def pay_out(request):
    return _create_payment(request, "payment_out")


@api_endpoint("PATCH", "POST")
def payment_cancel(request, pk):
    ctx = TenantContext.from_request(request)
    data = payloads.parse_json(request)
    payment = payment_service.cancel_payment(
        ctx, pk, reason=payloads.pick(data, "reason", default=""))
    return ok(payloads.payment_to_dict(payment),
              f"Payment {payment.payment_number} cancelled")


# ---------- documents ----------
@api_endpoint("GET", "POST")
def document_collection(request, family):
    ctx = TenantContext.from_request(request)
    if request.method == "POST":
        return _create_document(ctx, request, family)

    params = request.GET
    qs = document_service.list_documents(
        ctx, family,
        status=params.get("status"),
        party_id=payloads.parse_int(params.get("party"), "party"),
        doc_type=params.get("docType"),
        date_from=payloads.parse_date(params.get("from"), "from"),
        date_to=payloads.parse_date(params.get("to"), "to"),
    )
    summary = document_service.summarize(qs)
    return ok({
        "documents": [payloads.document_to_dict(d, with_lines=False)
                      for d in qs],
        "summary": {
            "count": summary["count"],
            "totalAmount": payloads.money(summary["total"]),
            "paidAmount": payloads.money(summary["paid"]),
            "pendingAmount": payloads.money(summary["pending"]),
        },
    })


def _create_document(ctx, request, family):
    data = payloads.parse_json(request)
    doc_type, party_fields, kwargs = payloads.document_request(data, family)
    with transaction.atomic():
        party = resolve_party(ctx, **party_fields)
        document = document_service.build_document(
            ctx, doc_type, party, **kwargs)
    return ok(payloads.document_to_dict(document),
              f"{document.get_doc_type_display()} {document.number} created",
              status=201)


@api_endpoint("GET")
def document_detail(request, family, pk):
    ctx = TenantContext.from_request(request)
    document = document_service.get_document(ctx, family, pk)
    return ok(payloads.document_to_dict(document))


@api_endpoint("PATCH")
def document_status(request, family, pk):
    ctx = TenantContext.from_request(request)
    data = payloads.parse_json(request)
    status = payloads.pick(data, "status")
    if not status:
        raise ValidationError({"status": "Status is required"})
    # scope check before the transition
    document_service.family_queryset(ctx, family).get(pk=pk)
    document = document_service.update_status(
        ctx, pk, status, reason=payloads.pick(data, "reason", default=""))
    return ok(payloads.document_to_dict(document),
              f"Status changed to {document.status}")


@api_endpoint("GET", "POST")
def document_payments(request, family, pk):
    ctx = TenantContext.from_request(request)
    document = document_service.family_queryset(ctx, family).get(pk=pk)
    if request.method == "GET":
        history = [{
            "amount": payloads.money(entry.amount),
            "method": entry.method,
            "reference": entry.reference,
            "paidOn": payloads.iso(entry.paid_on),
            "paymentNumber": entry.payment.payment_number
            if entry.payment_id else None,
            "notes": entry.notes,
        } for entry in document.payment_history.select_related("payment")]
        return ok({"history": history})

    data = payloads.parse_json(request)
    amount = payloads.parse_decimal(payloads.pick(data, "amount"), "amount")
    if amount is None:
        raise ValidationError({"amount": "Amount is required"})
    document, payment = payment_service.add_document_payment(
        ctx, document.pk, amount,
        method=payloads.pick(data, "paymentMethod", "method", default="cash"),
        reference=payloads.pick(data, "reference", default=""),
        notes=payloads.pick(data, "notes", default=""),
        payment_date=payloads.parse_date(
            payloads.pick(data, "paymentDate", "date"), "paymentDate"),
        is_advance=payloads.parse_bool(
            payloads.pick(data, "isAdvance"), default=False),
    )
    return ok({"document": payloads.document_to_dict(document),
               "payment": payloads.payment_to_dict(payment)},
              f"Payment of {payment.amount} added to {document.number}",
              status=201)


@api_endpoint("POST")
def document_convert(request, family, pk):
    ctx = TenantContext.from_request(request)
    if family not in ("sales-orders", "purchase-orders"):
        raise BusinessRuleError("Only orders can be converted to invoices")
    document_service.family_queryset(ctx, family).get(pk=pk)
    data = payloads.parse_json(request)
    invoice = document_service.convert_to_invoice(
        ctx, pk,
        invoice_date=payloads.parse_date(
            payloads.pick(data, "invoiceDate"), "invoiceDate"),
        transfer_advance=payloads.parse_bool(
            payloads.pick(data, "transferAdvancePayment", "transferAdvance"),
            default=True),
    )
    return ok(payloads.document_to_dict(invoice),
              f"Converted to {invoice.number}", status=201)
