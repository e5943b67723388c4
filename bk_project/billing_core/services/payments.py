import logging
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from .. import doctypes
from ..exceptions import AlreadyCancelled, DocumentLocked, PaymentExceedsBalance
from ..models import (Document, Party, Payment, PaymentAllocation,
                      PaymentHistoryEntry)
from .audit_helper import log_action
from .numbering import generate_payment_number
from .tax import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)

# document direction -> ledger payment type
DIRECTION_PAYMENT_TYPE = {
    doctypes.SALES: "payment_in",
    doctypes.PURCHASE: "payment_out",
}


# ----------------------------
# Document payment state
# ----------------------------
def derive_payment_status(final_total, paid_amount):
    final_total = round2(final_total)
    paid_amount = round2(paid_amount)
    if paid_amount <= 0:
        return "pending"
    if paid_amount >= final_total:
        return "paid"
    return "partial"


def apply_payment_state(document, today=None):
    """
    Recompute pending amount, payment status and due date from
    final_total and paid_amount. Does not save.
    """
    today = today or timezone.localdate()
    document.paid_amount = round2(document.paid_amount)
    document.pending_amount = max(
        round2(document.final_total - document.paid_amount), ZERO)
    status = derive_payment_status(document.final_total, document.paid_amount)

    if status == "paid":
        document.due_date = None
    elif document.due_date is None and document.credit_days > 0:
        # first time the document owes money on credit
        start = document.payment_date or document.document_date or today
        document.due_date = start + timedelta(days=document.credit_days)

    if status != "paid" and document.due_date and document.due_date < today:
        status = "overdue"

    document.payment_status = status
    return document


# ----------------------------
# Ledger payments
# ----------------------------
def _record_payment(ctx, *, party_id, payment_type, amount, method="cash",
                    payment_date=None, reference="", notes=""):
    """Create the Payment row and move the party balance. Caller holds the
    transaction."""
    amount = round2(amount)
    if amount <= 0:
        raise ValidationError({"amount": "Amount must be greater than 0"})

    # lock the party so concurrent payments see each other's balance
    party = Party.objects.select_for_update().get(
        pk=party_id, company=ctx.company)

    before = round2(party.current_balance)
    # payment_in raises the balance, payment_out lowers it
    if payment_type == "payment_in":
        after = round2(before + amount)
    else:
        after = round2(before - amount)

    payment_date = payment_date or timezone.localdate()
    payment = Payment.objects.create(
        company=ctx.company,
        payment_number=generate_payment_number(
            ctx.company, payment_type, payment_date),
        payment_type=payment_type,
        party=party,
        amount=amount,
        payment_method=method or "cash",
        payment_date=payment_date,
        reference=reference or "",
        notes=notes or "",
        party_balance_before=before,
        party_balance_after=after,
        status="completed",
        created_by=ctx.actor,
    )

    party.current_balance = after
    party.save(update_fields=["current_balance", "updated_at"])
    return payment


def _apply_to_document(ctx, document, payment, amount, *, method="cash",
                       reference="", notes="", paid_on=None,
                       is_advance=False):
    """
    Settle `amount` of a locked document from `payment`.
        1. Bump paid (and advance) amount, recompute state.
        2. Append a history entry.
        3. Snapshot the allocation.
    """
    amount = round2(amount)
    paid_on = paid_on or timezone.localdate()

    document.paid_amount = round2(document.paid_amount + amount)
    if is_advance:
        document.advance_amount = round2(document.advance_amount + amount)
    document.payment_date = paid_on
    if method:
        document.payment_method = method
    apply_payment_state(document)
    document.last_modified_by = ctx.actor
    document.save()

    PaymentHistoryEntry.objects.create(
        company=document.company,
        document=document,
        payment=payment,
        amount=amount,
        method=method or "cash",
        reference=reference or "",
        paid_on=paid_on,
        notes=notes or "",
        created_by=ctx.actor,
    )

    return PaymentAllocation.objects.create(
        company=document.company,
        payment=payment,
        document=document,
        document_total=document.final_total,
        allocated_amount=amount,
        remaining_amount=document.pending_amount,
        is_fully_paid=document.pending_amount == 0,
    )


def _lock_document(ctx, document_id):
    return (Document.objects.select_for_update()
            .select_related("party")
            .get(pk=document_id, company=ctx.company))


def add_document_payment(ctx, document_id, amount, method="cash",
                         reference="", notes="", payment_date=None,
                         is_advance=False):
    """
    Record money against one document.
    Workflow:
        1. Lock the document row (no double allocation).
        2. Reject non-positive amounts and anything above the balance.
        3. Create the companion ledger payment (sales -> payment_in,
           purchase -> payment_out) and move the party balance.
        4. Update the document, its history and the allocation.
    Returns (document, payment).
    """
    amount = to_decimal(amount)
    with transaction.atomic():
        document = _lock_document(ctx, document_id)
        if document.status == "cancelled":
            raise DocumentLocked(f"{document.number} is cancelled")

        balance = document.balance_amount
        if amount <= 0:
            raise PaymentExceedsBalance("Payment amount must be greater than 0")
        if round2(amount) > balance:
            raise PaymentExceedsBalance(
                f"Payment of {round2(amount)} exceeds the balance of {balance}")

        payment_date = payment_date or timezone.localdate()
        payment = _record_payment(
            ctx,
            party_id=document.party_id,
            payment_type=DIRECTION_PAYMENT_TYPE[document.direction],
            amount=amount,
            method=method,
            payment_date=payment_date,
            reference=reference,
            notes=notes or f"Payment for {document.number}",
        )
        _apply_to_document(
            ctx, document, payment, amount,
            method=method, reference=reference, notes=notes,
            paid_on=payment_date, is_advance=is_advance,
        )

        log_action(
            action="add_payment",
            instance=document,
            user=ctx.actor,
            changes={"Payment": payment.payment_number,
                     "Amount": str(payment.amount),
                     "Payment status": document.payment_status,
                     "Pending": str(document.pending_amount)},
        )
    return document, payment


def create_payment(ctx, payment_type, party, amount, method="cash",
                   payment_date=None, reference="", notes="",
                   document_id=None):
    """
    Pay-in / pay-out.
    With `document_id`, the payment also settles that document up to its
    pending amount; any excess stays on the party balance only.
    """
    if payment_type not in doctypes.PAYMENT_PREFIXES:
        raise ValidationError({"payment_type": f"Unknown type {payment_type}"})
    amount = to_decimal(amount)

    with transaction.atomic():
        document = None
        if document_id:
            document = _lock_document(ctx, document_id)
            if document.party_id != party.pk:
                raise ValidationError(
                    "Document belongs to a different party")
            if DIRECTION_PAYMENT_TYPE[document.direction] != payment_type:
                raise ValidationError(
                    f"{document.number} cannot take a {payment_type}")
            if document.status == "cancelled":
                raise DocumentLocked(f"{document.number} is cancelled")

        payment = _record_payment(
            ctx,
            party_id=party.pk,
            payment_type=payment_type,
            amount=amount,
            method=method,
            payment_date=payment_date,
            reference=reference,
            notes=notes,
        )

        if document is not None:
            allocated = min(payment.amount, document.balance_amount)
            if allocated > 0:
                _apply_to_document(
                    ctx, document, payment, allocated,
                    method=payment.payment_method, reference=reference,
                    notes=notes, paid_on=payment.payment_date,
                )

        log_action(
            action="create_payment",
            instance=payment,
            user=ctx.actor,
            changes={"Type": payment_type,
                     "Amount": str(payment.amount),
                     "Balance before": str(payment.party_balance_before),
                     "Balance after": str(payment.party_balance_after)},
        )
    return payment


def receive_payment(ctx, party, amount, **kwargs):
    return create_payment(ctx, "payment_in", party, amount, **kwargs)


def make_payment(ctx, party, amount, **kwargs):
    return create_payment(ctx, "payment_out", party, amount, **kwargs)


def cancel_payment(ctx, payment_id, reason=""):
    """
    Reverse a payment's effect on the party balance and mark it cancelled.
    Documents it settled keep their paid amount.
    """
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(
            pk=payment_id, company=ctx.company)
        if payment.status == "cancelled":
            raise AlreadyCancelled(
                f"Payment {payment.payment_number} is already cancelled")

        party = Party.objects.select_for_update().get(pk=payment.party_id)
        before = round2(party.current_balance)
        party.current_balance = round2(before - payment.balance_effect)
        party.save(update_fields=["current_balance", "updated_at"])

        note = f"Cancelled: {reason}" if reason else "Cancelled"
        payment.notes = f"{payment.notes}\n{note}" if payment.notes else note
        payment.status = "cancelled"
        payment.cancel_reason = reason or ""
        payment.cancelled_at = timezone.now()
        payment.cancelled_by = ctx.actor
        payment.save()

        log_action(
            action="cancel_payment",
            instance=payment,
            user=ctx.actor,
            changes={"Reason": reason,
                     "Balance before": str(before),
                     "Balance after": str(party.current_balance)},
        )
    return payment


# ----------------------------
# Reconciliation
# ----------------------------
def recompute_party_balance(party_id):
    """Opening balance plus completed pay-ins minus completed pay-outs."""
    with transaction.atomic():
        party = Party.objects.select_for_update().get(pk=party_id)
        completed = Payment.objects.filter(party=party, status="completed")
        received = completed.filter(payment_type="payment_in").aggregate(
            total=Sum("amount"))["total"] or ZERO
        paid = completed.filter(payment_type="payment_out").aggregate(
            total=Sum("amount"))["total"] or ZERO

        balance = round2(party.opening_balance + received - paid)
        if balance != party.current_balance:
            logger.warning("Party %s balance drifted: stored %s, ledger %s",
                           party.pk, party.current_balance, balance)
            party.current_balance = balance
            party.save(update_fields=["current_balance", "updated_at"])
    return balance


def mark_overdue(company=None, today=None):
    """Flag unpaid documents whose due date has passed. Returns the count."""
    today = today or timezone.localdate()
    qs = Document.objects.get_queryset().open_balance().filter(
        due_date__lt=today, payment_status__in=["pending", "partial"])
    if company is not None:
        qs = qs.for_company(company)
    return qs.update(payment_status="overdue", updated_at=timezone.now())
