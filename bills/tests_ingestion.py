"""
Tests for bill ingestion: orchestrator behaviour and the upload endpoint.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIRequestFactory, force_authenticate

from bills.api import BillUploadView
from bills.extraction import InvalidExtractionResponse
from bills.models import Bill, BillItem
from bills.services import BillIngestionService
from bills.storage import StoredObject
from common.exceptions import ClientInputError
from common.identity import IdentityUser
from webhooks.services import ExtractionTimeout, ExtractionWebhookClient

SALES_RESPONSE = {
    "output": {
        "invoice": {"invoiceNo": "INV-1001", "invoiceDate": "15/09/2026"},
        "seller": {"name": "Us Pvt Ltd", "address": "1 Park St", "gstin": "29ABCDE1234F1Z5"},
        "buyer": {"name": "Client LLP", "address": "2 Lake Rd", "gstin": "27PQRSX6789K1Z2"},
        "totalAmount": 1180.00,
        "gstAmount": 180.00,
        "items": [
            {"description": "Consulting", "quantity": 2, "unitPrice": 500, "amount": 1, "gstRate": 18},
            {"description": "Travel", "quantity": 1, "unitPrice": 180, "amount": 9999, "category": "travel"},
        ],
    }
}


class IngestionTestBase(TestCase):
    def setUp(self):
        self.user = IdentityUser(id="user-1", email="owner@example.com")
        self.storage = MagicMock()
        self.storage.store.return_value = StoredObject(
            key="user-1/1760000000000_invoice.pdf",
            public_url="https://cdn.example.com/bills/user-1/1760000000000_invoice.pdf",
        )
        self.token_issuer = MagicMock()
        self.token_issuer.issue.return_value = "handoff-token"
        self.extraction = MagicMock()
        self.extraction.process.return_value = SALES_RESPONSE
        self.service = BillIngestionService(self.storage, self.token_issuer, self.extraction)

    def _pdf(self, name="invoice.pdf", content=b"%PDF-1.4 test", content_type="application/pdf"):
        return SimpleUploadedFile(name, content, content_type=content_type)


class BillIngestionServiceTests(IngestionTestBase):
    def test_sales_pdf_scenario(self):
        result = self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)

        bill = Bill.objects.get(pk=result.bill_id)
        self.assertEqual(bill.user_id, "user-1")
        self.assertEqual(bill.transaction_type, "sales")
        self.assertEqual(bill.total_amount, Decimal("1180.00"))
        self.assertEqual(bill.gst_amount, Decimal("180.00"))
        self.assertEqual(bill.invoice_number, "INV-1001")
        self.assertEqual(bill.file_key, "user-1/1760000000000_invoice.pdf")
        self.assertEqual(bill.raw_data, SALES_RESPONSE)

        amounts = list(bill.items.order_by("id").values_list("amount", flat=True))
        self.assertEqual(amounts, [Decimal("1000"), Decimal("180")])
        self.assertEqual(result.data, SALES_RESPONSE["output"])

    def test_item_amount_identity_holds_at_rest(self):
        self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)
        for item in BillItem.objects.all():
            self.assertEqual(item.amount, item.quantity * item.unit_price)
        self.assertEqual(BillItem.objects.get(description="Travel").category, "travel")
        self.assertEqual(BillItem.objects.get(description="Consulting").category, "uncategorized")

    def test_transaction_type_comes_from_caller(self):
        self.extraction.process.return_value = {"transactionType": "sales", "totalAmount": 10}
        result = self.service.ingest(uploaded_file=self._pdf(), transaction_type="purchase", user=self.user)
        self.assertEqual(result.bill.transaction_type, "purchase")

    def test_missing_transaction_type_defaults_to_purchase(self):
        result = self.service.ingest(uploaded_file=self._pdf(), transaction_type=None, user=self.user)
        self.assertEqual(result.bill.transaction_type, "purchase")

    def test_collaborators_receive_upload_details(self):
        self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)

        self.storage.store.assert_called_once_with(
            b"%PDF-1.4 test", "application/pdf", "user-1", "invoice.pdf"
        )
        self.token_issuer.issue.assert_called_once_with(
            user_id="user-1",
            user_email="owner@example.com",
            file_name="user-1/1760000000000_invoice.pdf",
            file_url="https://cdn.example.com/bills/user-1/1760000000000_invoice.pdf",
        )
        self.extraction.process.assert_called_once_with(
            file_url="https://cdn.example.com/bills/user-1/1760000000000_invoice.pdf",
            file_name="user-1/1760000000000_invoice.pdf",
            file_type="application/pdf",
            user_id="user-1",
            user_email="owner@example.com",
            token="handoff-token",
        )

    def test_empty_file_rejected(self):
        empty = SimpleUploadedFile("empty.pdf", b"", content_type="application/pdf")
        with self.assertRaises(ClientInputError):
            self.service.ingest(uploaded_file=empty, transaction_type="sales", user=self.user)
        with self.assertRaises(ClientInputError):
            self.service.ingest(uploaded_file=None, transaction_type="sales", user=self.user)
        self.storage.store.assert_not_called()

    def test_unknown_transaction_type_rejected(self):
        with self.assertRaises(ClientInputError):
            self.service.ingest(uploaded_file=self._pdf(), transaction_type="refund", user=self.user)
        self.storage.store.assert_not_called()

    def test_non_image_non_pdf_rejected_before_any_call(self):
        text = self._pdf(name="notes.txt", content=b"hello", content_type="text/plain")
        with self.assertRaises(ClientInputError):
            self.service.ingest(uploaded_file=text, transaction_type="sales", user=self.user)
        self.storage.store.assert_not_called()
        self.token_issuer.issue.assert_not_called()
        self.extraction.process.assert_not_called()

    def test_unusable_response_persists_nothing(self):
        self.extraction.process.return_value = {"output": "sorry"}
        with self.assertRaises(Exception):
            self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)
        self.assertEqual(Bill.objects.count(), 0)

    def test_empty_output_persists_nothing(self):
        for response in ({"output": {}}, {"output": None}, {"output": []}):
            self.extraction.process.return_value = response
            with self.subTest(response=response):
                with self.assertRaises(InvalidExtractionResponse):
                    self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)
        self.assertEqual(Bill.objects.count(), 0)

    def test_item_failure_rolls_back_header(self):
        with patch("bills.services.BillItem.objects.bulk_create", side_effect=DatabaseError("disk full")):
            with self.assertRaises(DatabaseError):
                self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)
        self.assertEqual(Bill.objects.count(), 0)
        self.assertEqual(BillItem.objects.count(), 0)

    def test_same_file_twice_creates_two_bills(self):
        self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)
        self.service.ingest(uploaded_file=self._pdf(), transaction_type="sales", user=self.user)
        self.assertEqual(Bill.objects.filter(user_id="user-1").count(), 2)


@override_settings(BILL_UPLOAD_MAX_BYTES=1024)
class BillUploadViewTests(IngestionTestBase):
    def setUp(self):
        super().setUp()
        self.factory = APIRequestFactory()

    def _post(self, data, service=None):
        request = self.factory.post("/api/bills/upload", data, format="multipart")
        force_authenticate(request, user=self.user)
        view = BillUploadView.as_view(ingestion_service=service or self.service)
        return view(request)

    def test_upload_returns_bill_id_and_data(self):
        response = self._post({"file": self._pdf(), "billType": "sales"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["billId"], Bill.objects.get().id)
        self.assertEqual(response.data["data"]["invoice"]["invoiceNo"], "INV-1001")

    def test_missing_file_is_400(self):
        response = self._post({"billType": "sales"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "No file uploaded")
        self.storage.store.assert_not_called()

    def test_unsupported_file_is_400(self):
        response = self._post({"file": self._pdf("a.txt", b"hi", "text/plain"), "billType": "sales"})
        self.assertEqual(response.status_code, 400)
        self.storage.store.assert_not_called()
        self.extraction.process.assert_not_called()

    def test_oversized_file_is_400(self):
        response = self._post({"file": self._pdf(content=b"x" * 2048), "billType": "sales"})
        self.assertEqual(response.status_code, 400)
        self.storage.store.assert_not_called()

    def test_invalid_bill_type_is_400(self):
        response = self._post({"file": self._pdf(), "billType": "refund"})
        self.assertEqual(response.status_code, 400)

    def test_unauthenticated_is_401(self):
        request = self.factory.post("/api/bills/upload", {"file": self._pdf()}, format="multipart")
        response = BillUploadView.as_view(ingestion_service=self.service)(request)
        self.assertEqual(response.status_code, 401)

    def test_workflow_timeout_is_500_without_retry_or_bill(self):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.Timeout("read timed out")
        client = ExtractionWebhookClient("https://workflow.example.com/hook", timeout=120, session=session)
        service = BillIngestionService(self.storage, self.token_issuer, client)

        response = self._post({"file": self._pdf(), "billType": "sales"}, service=service)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["error"], "Internal server error while processing request")
        self.assertEqual(session.post.call_count, 1)
        self.assertEqual(session.post.call_args.kwargs["timeout"], 120)
        self.assertEqual(Bill.objects.count(), 0)

    def test_storage_failure_is_500_with_generic_message(self):
        from bills.storage import StorageError
        self.storage.store.side_effect = StorageError("bucket bills does not exist")
        response = self._post({"file": self._pdf(), "billType": "purchase"})
        self.assertEqual(response.status_code, 500)
        self.assertNotIn("bucket", response.data["error"])
        self.extraction.process.assert_not_called()

    def test_extraction_timeout_type(self):
        self.extraction.process.side_effect = ExtractionTimeout("no answer in 120s")
        response = self._post({"file": self._pdf(), "billType": "sales"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(Bill.objects.count(), 0)
