import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from billing_core.exceptions import (AlreadyCancelled, DocumentLocked,
                                     PaymentExceedsBalance)
from billing_core.models import AuditLog, Document, Party, Payment
from billing_core.services.documents import build_document, update_status
from billing_core.services.payments import (add_document_payment,
                                            cancel_payment, derive_payment_status,
                                            make_payment, mark_overdue,
                                            receive_payment,
                                            recompute_party_balance)

from .helpers import make_party, make_tenant, plain_line

D = Decimal


def test_derive_payment_status_thresholds():
    assert derive_payment_status(1000, 0) == "pending"
    assert derive_payment_status(1000, "0.01") == "partial"
    assert derive_payment_status(1000, 999) == "partial"
    assert derive_payment_status(1000, 1000) == "paid"
    assert derive_payment_status(1000, 1200) == "paid"


class PartyBalanceTests(TestCase):
    def setUp(self):
        self.company, self.user, self.ctx = make_tenant()
        self.party = make_party(self.company, opening_balance="200.00")

    def test_payment_in_then_cancel_restores_balance(self):
        payment = receive_payment(self.ctx, self.party, D("500"))

        self.assertEqual(payment.party_balance_before, D("200.00"))
        self.assertEqual(payment.party_balance_after, D("700.00"))
        self.party.refresh_from_db()
        self.assertEqual(self.party.current_balance, D("700.00"))

        cancelled = cancel_payment(self.ctx, payment.pk, reason="Entered twice")

        self.party.refresh_from_db()
        self.assertEqual(self.party.current_balance, D("200.00"))
        self.assertEqual(cancelled.status, "cancelled")
        self.assertEqual(cancelled.cancel_reason, "Entered twice")
        self.assertEqual(cancelled.cancelled_by, self.user)
        self.assertIsNotNone(cancelled.cancelled_at)
        self.assertIn("Entered twice", cancelled.notes)

    def test_cancel_twice_is_rejected(self):
        payment = receive_payment(self.ctx, self.party, D("50"))
        cancel_payment(self.ctx, payment.pk)

        with self.assertRaises(AlreadyCancelled):
            cancel_payment(self.ctx, payment.pk)

        self.party.refresh_from_db()
        self.assertEqual(self.party.current_balance, D("200.00"))

    def test_payment_out_lowers_balance(self):
        payment = make_payment(self.ctx, self.party, D("150.25"))

        self.assertEqual(payment.payment_type, "payment_out")
        self.assertEqual(payment.party_balance_after, D("49.75"))
        self.assertTrue(payment.payment_number.startswith("PAY-OUT-"))

    def test_balance_is_conserved_over_mixed_operations(self):
        ins = [D("100.10"), D("250.00"), D("0.35")]
        outs = [D("75.50"), D("20.00")]
        payments = [receive_payment(self.ctx, self.party, a) for a in ins]
        payments += [make_payment(self.ctx, self.party, a) for a in outs]

        # reverse one of each direction
        cancel_payment(self.ctx, payments[1].pk)
        cancel_payment(self.ctx, payments[3].pk)

        expected = (D("200.00") + sum(ins) - sum(outs)
                    - payments[1].amount + payments[3].amount)
        self.party.refresh_from_db()
        self.assertEqual(self.party.current_balance, expected)
        self.assertEqual(recompute_party_balance(self.party.pk), expected)

    def test_non_positive_amount_is_rejected(self):
        with self.assertRaises(ValidationError):
            receive_payment(self.ctx, self.party, D("0"))
        self.assertFalse(Payment.objects.exists())

    def test_recompute_repairs_drift(self):
        receive_payment(self.ctx, self.party, D("300"))
        Party.objects.filter(pk=self.party.pk).update(
            current_balance=D("12345.00"))

        with self.assertLogs("billing_core.services.payments", "WARNING"):
            balance = recompute_party_balance(self.party.pk)

        self.assertEqual(balance, D("500.00"))
        self.party.refresh_from_db()
        self.assertEqual(self.party.current_balance, D("500.00"))

    def test_other_company_cannot_cancel(self):
        payment = receive_payment(self.ctx, self.party, D("10"))
        _, _, other_ctx = make_tenant("other-co")

        with self.assertRaises(Payment.DoesNotExist):
            cancel_payment(other_ctx, payment.pk)

    def test_audit_trail_is_written(self):
        payment = receive_payment(self.ctx, self.party, D("10"))
        cancel_payment(self.ctx, payment.pk, reason="test")

        actions = list(AuditLog.objects.for_company(self.company)
                       .order_by("id").values_list("action", flat=True))
        self.assertEqual(actions, ["create_payment", "cancel_payment"])


class DocumentPaymentTests(TestCase):
    def setUp(self):
        self.company, self.user, self.ctx = make_tenant()
        self.customer = make_party(self.company)
        self.supplier = make_party(self.company, "Gupta Wholesale",
                                   "9123456780", party_type="supplier")

    def invoice(self, doc_type="sales_invoice", party=None, **kwargs):
        # 10 x 100, no tax -> 1000.00
        return build_document(self.ctx, doc_type, party or self.customer,
                              [plain_line()], **kwargs)

    def test_partial_then_full_payment(self):
        document = self.invoice()
        self.assertEqual(document.final_total, D("1000.00"))
        self.assertEqual(document.payment_status, "pending")

        document, first = add_document_payment(self.ctx, document.pk, D("400"))
        self.assertEqual(document.payment_status, "partial")
        self.assertEqual(document.pending_amount, D("600.00"))
        self.assertEqual(first.payment_type, "payment_in")

        document, second = add_document_payment(self.ctx, document.pk,
                                                 D("600"), method="upi",
                                                 reference="UTR123")
        self.assertEqual(document.payment_status, "paid")
        self.assertEqual(document.pending_amount, D("0.00"))
        self.assertIsNone(document.due_date)

        history = list(document.payment_history.order_by("id"))
        self.assertEqual([h.amount for h in history], [D("400.00"), D("600.00")])
        self.assertEqual(history[1].reference, "UTR123")

        allocation = second.allocations.get()
        self.assertEqual(allocation.document_id, document.pk)
        self.assertEqual(allocation.remaining_amount, D("0.00"))
        self.assertTrue(allocation.is_fully_paid)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, D("1000.00"))

    def test_pending_never_increases(self):
        document = self.invoice()
        pending = [document.pending_amount]
        for amount in ("100", "0.01", "250.50", "649.49"):
            document, _ = add_document_payment(self.ctx, document.pk, D(amount))
            pending.append(document.pending_amount)

        self.assertEqual(pending, sorted(pending, reverse=True))
        self.assertEqual(pending[-1], D("0.00"))

    def test_payment_above_balance_is_rejected(self):
        document = self.invoice()
        with self.assertRaises(PaymentExceedsBalance):
            add_document_payment(self.ctx, document.pk, D("1000.01"))
        with self.assertRaises(PaymentExceedsBalance):
            add_document_payment(self.ctx, document.pk, D("0"))

        add_document_payment(self.ctx, document.pk, D("1000"))
        with self.assertRaises(PaymentExceedsBalance):
            add_document_payment(self.ctx, document.pk, D("1"))
        self.assertEqual(Payment.objects.count(), 1)

    def test_credit_days_set_due_date_until_paid(self):
        today = timezone.localdate()
        document = self.invoice(credit_days=30, document_date=today)
        self.assertEqual(document.due_date, today + datetime.timedelta(days=30))

        document, _ = add_document_payment(self.ctx, document.pk, D("100"),
                                           payment_date=today)
        self.assertEqual(document.due_date, today + datetime.timedelta(days=30))

        document, _ = add_document_payment(self.ctx, document.pk, D("900"))
        self.assertIsNone(document.due_date)

    def test_purchase_payment_goes_out(self):
        document = self.invoice("purchase_invoice", party=self.supplier)
        _, payment = add_document_payment(self.ctx, document.pk, D("250"))

        self.assertEqual(payment.payment_type, "payment_out")
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.current_balance, D("-250.00"))

    def test_advance_payment_on_order(self):
        order = self.invoice("sales_order")
        order, _ = add_document_payment(self.ctx, order.pk, D("300"),
                                        is_advance=True)
        self.assertEqual(order.advance_amount, D("300.00"))
        self.assertEqual(order.paid_amount, D("300.00"))

    def test_cancelling_payment_leaves_document_untouched(self):
        document = self.invoice()
        _, payment = add_document_payment(self.ctx, document.pk, D("400"))

        cancel_payment(self.ctx, payment.pk, reason="bounced")

        document.refresh_from_db()
        self.assertEqual(document.paid_amount, D("400.00"))
        self.assertEqual(document.payment_status, "partial")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, D("0.00"))

    def test_cancelled_document_takes_no_payment(self):
        document = self.invoice()
        update_status(self.ctx, document.pk, "cancelled")

        with self.assertRaises(DocumentLocked):
            add_document_payment(self.ctx, document.pk, D("10"))

    def test_pay_in_settles_named_document_up_to_its_balance(self):
        document = self.invoice()
        payment = receive_payment(self.ctx, self.customer, D("1200"),
                                  document_id=document.pk)

        document.refresh_from_db()
        self.assertEqual(document.payment_status, "paid")
        self.assertEqual(payment.allocations.get().allocated_amount,
                         D("1000.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, D("1200.00"))

    def test_pay_in_rejects_other_party_or_direction(self):
        document = self.invoice()
        with self.assertRaises(ValidationError):
            receive_payment(self.ctx, self.supplier, D("10"),
                            document_id=document.pk)
        with self.assertRaises(ValidationError):
            make_payment(self.ctx, self.customer, D("10"),
                         document_id=document.pk)

    def test_mark_overdue(self):
        document = self.invoice(credit_days=5)
        past = timezone.localdate() - datetime.timedelta(days=1)
        Document.objects.filter(pk=document.pk).update(
            due_date=past, payment_status="pending")
        paid = self.invoice()
        add_document_payment(self.ctx, paid.pk, D("1000"))

        self.assertEqual(mark_overdue(company=self.company), 1)
        document.refresh_from_db()
        self.assertEqual(document.payment_status, "overdue")
        self.assertTrue(document.is_overdue)
