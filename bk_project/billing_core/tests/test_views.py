import json
from decimal import Decimal
from unittest import mock

from django.test import RequestFactory, TestCase, override_settings

from billing_core.models import Document, Party, Payment
from billing_core.services.documents import build_document
from billing_core.views import (document_collection, document_convert,
                                document_detail, document_payments,
                                document_status, pay_in, payment_cancel,
                                payment_list)

from .helpers import make_party, make_tenant, plain_line


def body(response):
    return json.loads(response.content)


class ApiTestCase(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.company, self.user, self.ctx = make_tenant()
        self.customer = make_party(self.company, opening_balance="200.00")

    def request(self, method, path, data=None, company="default"):
        build = getattr(self.factory, method)
        if method == "get":
            request = build(path, data or {})
        else:
            request = build(path, data=json.dumps(data or {}),
                            content_type="application/json")
        request.user = self.user
        request.company = self.company if company == "default" else company
        return request


class PaymentApiTests(ApiTestCase):
    def test_pay_in_resolves_party_by_phone(self):
        response = pay_in(self.request("post", "/api/payments/pay-in", {
            "customerName": "Ravi Kumar",
            "mobile": "+91 98765 43210",
            "amount": 500,
            "paymentMethod": "upi",
            "reference": "UTR-1",
        }))

        self.assertEqual(response.status_code, 201)
        payload = body(response)
        self.assertTrue(payload["success"])
        self.assertEqual(payload["data"]["party"]["id"], self.customer.pk)
        self.assertEqual(payload["data"]["partyBalanceBefore"], 200.0)
        self.assertEqual(payload["data"]["partyBalanceAfter"], 700.0)
        self.assertTrue(payload["data"]["paymentNumber"].startswith("PAY-IN-"))
        self.assertEqual(Party.objects.count(), 1)

    def test_cancel_twice_is_a_conflict(self):
        created = body(pay_in(self.request("post", "/api/payments/pay-in", {
            "partyId": self.customer.pk, "amount": "75.50"})))
        payment_id = created["data"]["id"]

        first = payment_cancel(self.request(
            "patch", f"/api/payments/{payment_id}/cancel",
            {"reason": "Wrong party"}), pk=payment_id)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(body(first)["data"]["status"], "cancelled")

        second = payment_cancel(self.request(
            "patch", f"/api/payments/{payment_id}/cancel"), pk=payment_id)
        self.assertEqual(second.status_code, 409)
        self.assertFalse(body(second)["success"])

    def test_missing_amount_is_a_validation_error(self):
        response = pay_in(self.request("post", "/api/payments/pay-in", {
            "partyId": self.customer.pk}))
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", body(response)["error"])

    def test_non_finite_amounts_are_validation_errors(self):
        for amount in ("NaN", "Infinity", float("nan")):
            response = pay_in(self.request("post", "/api/payments/pay-in", {
                "partyId": self.customer.pk, "amount": amount}))
            self.assertEqual(response.status_code, 400)
            self.assertIn("amount", body(response)["error"])
        self.assertFalse(Payment.objects.exists())
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("200.00"))

    def test_list_only_shows_own_company(self):
        other, other_user, other_ctx = make_tenant("other-co")
        stranger = make_party(other, "Stranger", "9000000009")
        pay_in(self.request("post", "/api/payments/pay-in", {
            "partyId": self.customer.pk, "amount": 100}))
        pay_in(self.request("post", "/api/payments/pay-in", {
            "partyId": stranger.pk, "amount": 100}, company=other))

        payload = body(payment_list(self.request("get", "/api/payments")))
        self.assertEqual(payload["data"]["count"], 1)
        self.assertEqual(payload["data"]["totalAmount"], 100.0)

    def test_wrong_method_is_rejected(self):
        response = pay_in(self.request("get", "/api/payments/pay-in"))
        self.assertEqual(response.status_code, 405)


class DocumentApiTests(ApiTestCase):
    def test_create_sales_order_with_legacy_field_names(self):
        response = document_collection(
            self.request("post", "/api/sales-orders", {
                "customerName": "Anita Desai",
                "mobile": "9988776655",
                "orderDate": "2025-09-17",
                "items": [{"productName": "Bolt", "qty": 10,
                           "pricePerUnit": 100, "discountPercentage": 10,
                           "taxRate": 18}],
            }),
            family="sales-orders")

        self.assertEqual(response.status_code, 201)
        data = body(response)["data"]
        self.assertEqual(data["number"], "SO-20250917-0001")
        self.assertEqual(data["docType"], "sales_order")
        self.assertEqual(data["totals"]["finalTotal"], 1062.0)
        self.assertEqual(data["totals"]["cgstTotal"], 81.0)
        self.assertEqual(data["items"][0]["itemName"], "Bolt")
        self.assertEqual(data["party"]["name"], "Anita Desai")
        self.assertEqual(data["party"]["partyType"], "customer")

    def test_invalid_line_is_rejected(self):
        response = document_collection(
            self.request("post", "/api/sales", {
                "partyId": self.customer.pk,
                "items": [{"name": "Bolt", "quantity": 0, "price": 10}],
            }),
            family="sales")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Document.objects.exists())

    def test_doc_type_must_fit_family(self):
        response = document_collection(
            self.request("post", "/api/sales", {
                "partyId": self.customer.pk, "docType": "purchase_invoice",
                "items": [{"name": "Bolt", "quantity": 1, "price": 10}],
            }),
            family="sales")
        self.assertEqual(response.status_code, 400)

    def test_no_company_is_forbidden(self):
        response = document_collection(
            self.request("get", "/api/sales", company=None), family="sales")
        self.assertEqual(response.status_code, 403)

    def test_other_company_document_is_not_found(self):
        other, _, other_ctx = make_tenant("other-co")
        stranger = make_party(other, "Stranger", "9000000009")
        foreign = build_document(other_ctx, "sales_invoice", stranger,
                                 [plain_line()])

        response = document_detail(
            self.request("get", f"/api/sales/{foreign.pk}"),
            family="sales", pk=foreign.pk)
        self.assertEqual(response.status_code, 404)

    def test_empty_list_has_zero_summary(self):
        payload = body(document_collection(
            self.request("get", "/api/purchases"), family="purchases"))
        self.assertEqual(payload["data"]["documents"], [])
        self.assertEqual(payload["data"]["summary"], {
            "count": 0, "totalAmount": 0.0,
            "paidAmount": 0.0, "pendingAmount": 0.0,
        })

    def test_list_summary_and_filters(self):
        first = build_document(self.ctx, "sales_invoice", self.customer,
                               [plain_line()], paid_amount=Decimal("400"))
        build_document(self.ctx, "sales_invoice", self.customer,
                       [plain_line(quantity=1)])
        update_path = f"/api/sales/{first.pk}/status"
        document_status(self.request("patch", update_path,
                                     {"status": "cancelled"}),
                        family="sales", pk=first.pk)

        payload = body(document_collection(
            self.request("get", "/api/sales"), family="sales"))
        self.assertEqual(payload["data"]["summary"]["count"], 2)
        self.assertEqual(payload["data"]["summary"]["totalAmount"], 1100.0)
        self.assertEqual(payload["data"]["summary"]["paidAmount"], 400.0)
        self.assertNotIn("items", payload["data"]["documents"][0])

        payload = body(document_collection(
            self.request("get", "/api/sales", {"status": "cancelled"}),
            family="sales"))
        self.assertEqual(payload["data"]["summary"]["count"], 1)

    def test_add_payment_and_history(self):
        invoice = build_document(self.ctx, "sales_invoice", self.customer,
                                 [plain_line()])
        path = f"/api/sales/{invoice.pk}/payments"

        too_much = document_payments(
            self.request("post", path, {"amount": 1000.01}),
            family="sales", pk=invoice.pk)
        self.assertEqual(too_much.status_code, 400)

        added = document_payments(
            self.request("post", path, {"amount": 250, "method": "upi"}),
            family="sales", pk=invoice.pk)
        self.assertEqual(added.status_code, 201)
        data = body(added)["data"]
        self.assertEqual(data["document"]["payment"]["pendingAmount"], 750.0)
        self.assertEqual(data["document"]["payment"]["status"], "partial")
        self.assertEqual(data["payment"]["linkedDocuments"][0]["documentId"],
                         invoice.pk)

        history = body(document_payments(
            self.request("get", path), family="sales", pk=invoice.pk))
        self.assertEqual(len(history["data"]["history"]), 1)
        self.assertEqual(history["data"]["history"][0]["amount"], 250.0)

    def test_invalid_status_change(self):
        invoice = build_document(self.ctx, "sales_invoice", self.customer,
                                 [plain_line()])
        response = document_status(
            self.request("patch", f"/api/sales/{invoice.pk}/status",
                         {"status": "draft"}),
            family="sales", pk=invoice.pk)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(body(response)["success"])

    def test_convert_order(self):
        order = build_document(self.ctx, "sales_order", self.customer,
                               [plain_line()], advance_amount=Decimal("300"))
        response = document_convert(
            self.request("post",
                         f"/api/sales-orders/{order.pk}/convert-to-invoice",
                         {"invoiceDate": "2025-09-20"}),
            family="sales-orders", pk=order.pk)

        self.assertEqual(response.status_code, 201)
        data = body(response)["data"]
        self.assertEqual(data["docType"], "sales_invoice")
        self.assertEqual(data["sourceDocumentId"], order.pk)
        self.assertEqual(data["payment"]["paidAmount"], 300.0)
        self.assertEqual(data["documentDate"], "2025-09-20")

        again = document_convert(
            self.request("post",
                         f"/api/sales-orders/{order.pk}/convert-to-invoice"),
            family="sales-orders", pk=order.pk)
        self.assertEqual(again.status_code, 400)

    @override_settings(DEBUG=True)
    def test_unexpected_error_is_a_500(self):
        with mock.patch("billing_core.services.documents.list_documents",
                        side_effect=RuntimeError("boom")):
            with self.assertLogs("billing_core.views", "ERROR"):
                response = document_collection(
                    self.request("get", "/api/sales"), family="sales")

        self.assertEqual(response.status_code, 500)
        payload = body(response)
        self.assertEqual(payload["message"], "boom")
        self.assertIn("RuntimeError", payload["error"])
