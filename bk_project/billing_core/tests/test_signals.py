from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from billing_core.models import Document, Party, Payment
from billing_core.services.documents import build_document
from billing_core.services.payments import cancel_payment, receive_payment

from .helpers import make_party, make_tenant, plain_line


class DeleteGuardTests(TestCase):
    def setUp(self):
        self.company, self.user, self.ctx = make_tenant()
        self.party = make_party(self.company)

    def test_party_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                self.party.delete()
        self.assertTrue(Party.objects.filter(pk=self.party.pk).exists())

    def test_document_with_payments_cannot_be_deleted(self):
        paid = build_document(self.ctx, "sales_invoice", self.party,
                              [plain_line()], paid_amount=Decimal("10"))
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                paid.delete()
        self.assertTrue(Document.objects.filter(pk=paid.pk).exists())

    def test_unpaid_document_can_be_deleted(self):
        draft = build_document(self.ctx, "quotation", self.party,
                               [plain_line()])
        draft.delete()
        self.assertFalse(Document.objects.filter(pk=draft.pk).exists())

    def test_only_cancelled_payments_can_be_deleted(self):
        payment = receive_payment(self.ctx, self.party, Decimal("25"))
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                payment.delete()

        cancel_payment(self.ctx, payment.pk)
        Payment.objects.get(pk=payment.pk).delete()
        self.assertFalse(Payment.objects.filter(pk=payment.pk).exists())
