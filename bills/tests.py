"""
Tests for bill normalization helpers and the storage gateway.
"""
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import requests
from botocore.exceptions import ClientError
from django.test import SimpleTestCase

from common.exceptions import ClientInputError
from bills.extraction import (
    BarePayload,
    InvalidExtractionResponse,
    WrappedPayload,
    normalize_bill,
    normalize_item,
    resolve_payload,
)
from bills.storage import StorageError, StorageGateway, safe_filename
from bills.utils import (
    content_type_for,
    is_supported_content_type,
    is_valid_gstin,
    parse_invoice_date,
    to_decimal,
)

TODAY = date(2026, 10, 19)


class UtilsTests(SimpleTestCase):
    def test_gstin_validation(self):
        self.assertTrue(is_valid_gstin("29ABCDE1234F1Z5"))
        self.assertTrue(is_valid_gstin("29abcde1234f1z5"))
        self.assertFalse(is_valid_gstin("29ABCDE1234F1X5"))
        self.assertFalse(is_valid_gstin(""))
        self.assertFalse(is_valid_gstin(None))

    def test_parse_invoice_date_formats(self):
        self.assertEqual(parse_invoice_date("05/03/2024"), date(2024, 3, 5))
        self.assertEqual(parse_invoice_date("05-03-24"), date(2024, 3, 5))
        self.assertEqual(parse_invoice_date("2024-03-05"), date(2024, 3, 5))
        self.assertEqual(parse_invoice_date("2024-03-05T10:00:00Z"), date(2024, 3, 5))
        self.assertEqual(parse_invoice_date("5 Mar 2024"), date(2024, 3, 5))

    def test_parse_invoice_date_rejects_garbage(self):
        self.assertIsNone(parse_invoice_date("not a date"))
        self.assertIsNone(parse_invoice_date("31/02/2024"))
        self.assertIsNone(parse_invoice_date(None))

    def test_to_decimal_cleans_extracted_numbers(self):
        self.assertEqual(to_decimal("₹1,180.00"), Decimal("1180.00"))
        self.assertEqual(to_decimal("Rs. 99.5"), Decimal("99.50"))
        self.assertEqual(to_decimal(2), Decimal("2.00"))
        self.assertEqual(to_decimal(0.1), Decimal("0.10"))
        self.assertEqual(to_decimal(None), Decimal("0.00"))
        with self.assertRaises(ValueError):
            to_decimal("twelve")
        with self.assertRaises(ValueError):
            to_decimal(True)

    def test_content_types(self):
        self.assertTrue(is_supported_content_type("application/pdf"))
        self.assertTrue(is_supported_content_type("image/png"))
        self.assertFalse(is_supported_content_type("text/plain"))
        self.assertFalse(is_supported_content_type(""))
        self.assertEqual(content_type_for("scan.JPG"), "image/jpeg")
        self.assertEqual(content_type_for("notes"), "application/octet-stream")


class ExtractionPayloadTests(SimpleTestCase):
    def test_wrapped_response(self):
        payload = resolve_payload({"output": {"totalAmount": 10}})
        self.assertIsInstance(payload, WrappedPayload)
        self.assertEqual(payload.bill, {"totalAmount": 10})
        self.assertEqual(payload.shape, "wrapped")

    def test_bare_response(self):
        payload = resolve_payload({"totalAmount": 10, "items": []})
        self.assertIsInstance(payload, BarePayload)
        self.assertEqual(payload.bill["totalAmount"], 10)

    def test_unusable_responses_are_rejected(self):
        for raw in (None, {}, [], "ok", [{"output": {}}], {"output": "text"},
                    {"output": {}}, {"output": []}, {"output": None}):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidExtractionResponse):
                    resolve_payload(raw)

    def test_missing_fields_get_defaults(self):
        bill = normalize_bill(BarePayload(body={"items": [{}]}), today=TODAY)
        self.assertEqual(bill.invoice_number, "")
        self.assertEqual(bill.invoice_date, TODAY)
        self.assertEqual(bill.seller_name, "")
        self.assertEqual(bill.buyer_gstin, "")
        self.assertEqual(bill.total_amount, Decimal("0"))
        self.assertEqual(bill.gst_amount, Decimal("0"))
        item = bill.items[0]
        self.assertEqual(item.description, "")
        self.assertEqual(item.category, "uncategorized")
        self.assertEqual(item.gst_rate, Decimal("0"))
        self.assertEqual(item.amount, Decimal("0"))

    def test_item_amount_ignores_upstream_amount(self):
        item = normalize_item({"quantity": 3, "unitPrice": "12.50", "amount": 999})
        self.assertEqual(item.amount, Decimal("37.50"))
        self.assertEqual(item.amount, item.quantity * item.unit_price)

    def test_fractional_quantity_product_is_exact(self):
        item = normalize_item({"quantity": "1.125", "unitPrice": "0.99"})
        self.assertEqual(item.amount, Decimal("1.11375"))

    def test_negative_amounts_are_rejected(self):
        with self.assertRaises(InvalidExtractionResponse):
            normalize_bill(BarePayload(body={"totalAmount": -5}), today=TODAY)
        with self.assertRaises(InvalidExtractionResponse):
            normalize_item({"quantity": -1, "unitPrice": 10})

    def test_full_bill(self):
        bill = normalize_bill(WrappedPayload(output={
            "invoice": {"invoiceNo": "INV-7", "invoiceDate": "12/08/2024"},
            "seller": {"name": "Acme Traders", "address": "MG Road", "gstin": "29abcde1234f1z5"},
            "buyer": {"name": "Widget Co"},
            "totalAmount": "1,180.00",
            "gstAmount": 180,
            "items": [{"description": "Chair", "quantity": 2, "unitPrice": 500, "gstRate": 18}],
        }), today=TODAY)
        self.assertEqual(bill.invoice_number, "INV-7")
        self.assertEqual(bill.invoice_date, date(2024, 8, 12))
        self.assertEqual(bill.seller_gstin, "29ABCDE1234F1Z5")
        self.assertEqual(bill.buyer_address, "")
        self.assertEqual(bill.total_amount, Decimal("1180.00"))
        self.assertEqual(bill.items[0].amount, Decimal("1000"))
        self.assertEqual(bill.items[0].gst_rate, Decimal("18.00"))


class StorageGatewayTests(SimpleTestCase):
    def setUp(self):
        self.s3 = MagicMock()
        self.http = MagicMock()
        self.gateway = StorageGateway(
            self.s3,
            bucket="bills",
            public_base_url="https://cdn.example.com/bills/",
            http=self.http,
        )

    def test_build_key_is_namespaced_by_owner_and_time(self):
        key = self.gateway.build_key("user-1", "../My Bill (1).pdf", now_ms=1700000000000)
        self.assertEqual(key, "user-1/1700000000000_My_Bill_1.pdf")

    def test_safe_filename_fallback(self):
        self.assertEqual(safe_filename(""), "bill")
        self.assertEqual(safe_filename("C:\\scans\\receipt.PNG"), "receipt.png")

    def test_store_uploads_and_returns_public_url(self):
        stored = self.gateway.store(b"%PDF-1.4", "application/pdf", "user-1", "bill.pdf")
        self.assertTrue(stored.key.startswith("user-1/"))
        self.assertTrue(stored.key.endswith("_bill.pdf"))
        self.assertEqual(stored.public_url, f"https://cdn.example.com/bills/{stored.key}")
        self.s3.put_object.assert_called_once_with(
            Bucket="bills", Key=stored.key, Body=b"%PDF-1.4", ContentType="application/pdf"
        )

    def test_store_rejects_unsupported_type_before_upload(self):
        with self.assertRaises(ClientInputError):
            self.gateway.store(b"hello", "text/plain", "user-1", "notes.txt")
        self.s3.put_object.assert_not_called()

    def test_store_provider_error(self):
        self.s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with self.assertRaises(StorageError) as ctx:
            self.gateway.store(b"%PDF", "application/pdf", "user-1", "bill.pdf")
        self.assertIn("denied", str(ctx.exception))
        self.assertEqual(self.s3.put_object.call_count, 1)

    def test_retrieve_prefers_public_url(self):
        response = MagicMock(content=b"img", headers={"Content-Type": "image/png"})
        self.http.get.return_value = response
        obj = self.gateway.retrieve("user-1/1_a.png", "https://cdn.example.com/bills/user-1/1_a.png")
        self.assertEqual(obj.content, b"img")
        self.assertEqual(obj.content_type, "image/png")
        self.s3.get_object.assert_not_called()

    def test_retrieve_falls_back_to_storage_api(self):
        self.http.get.side_effect = requests.exceptions.ConnectionError("refused")
        body = MagicMock()
        body.read.return_value = b"%PDF"
        self.s3.get_object.return_value = {"Body": body, "ContentType": "application/pdf"}

        obj = self.gateway.retrieve("user-1/1_a.pdf", "https://cdn.example.com/bills/user-1/1_a.pdf")

        self.assertEqual(obj.content, b"%PDF")
        self.s3.get_object.assert_called_once_with(Bucket="bills", Key="user-1/1_a.pdf")

    def test_retrieve_legacy_row_derives_key_from_url(self):
        self.http.get.side_effect = requests.exceptions.HTTPError("404")
        body = MagicMock()
        body.read.return_value = b"%PDF"
        self.s3.get_object.return_value = {"Body": body}

        self.gateway.retrieve(None, "https://cdn.example.com/bills/user-1/1_a.pdf")

        self.s3.get_object.assert_called_once_with(Bucket="bills", Key="user-1/1_a.pdf")

    def test_retrieve_fails_when_both_paths_fail(self):
        self.http.get.side_effect = requests.exceptions.Timeout("slow")
        self.s3.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )
        with self.assertRaises(StorageError):
            self.gateway.retrieve("user-1/1_a.pdf", "https://cdn.example.com/bills/user-1/1_a.pdf")
