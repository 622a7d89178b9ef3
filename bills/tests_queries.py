"""
Tests for the read side: listing, detail, stats, download, status and delete.
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from bills.api import BillDetailView, BillDownloadView, BillListView, BillStatsView
from bills.models import Bill, BillItem
from bills.queries import BillQueryService
from bills.storage import RetrievedObject
from common.authentication import IdentityProviderAuthentication
from common.exceptions import AuthError, ClientInputError, NotFoundError
from common.identity import IdentityUser


def make_bill(user_id="user-1", transaction_type="purchase", total="100.00", gst="18.00", key="user-1/1_bill.pdf", **kwargs):
    return Bill.objects.create(
        user_id=user_id,
        file_url=f"https://cdn.example.com/bills/{key}",
        file_key=key,
        invoice_date=timezone.localdate(),
        transaction_type=transaction_type,
        total_amount=Decimal(total),
        gst_amount=Decimal(gst),
        **kwargs,
    )


def age(bill, days):
    Bill.objects.filter(pk=bill.pk).update(created_at=timezone.now() - timedelta(days=days))


class BillQueryServiceTests(TestCase):
    def setUp(self):
        self.storage = MagicMock()
        self.service = BillQueryService(storage=self.storage)

    def test_list_is_newest_first_and_limited(self):
        old = make_bill(invoice_number="OLD")
        age(old, 3)
        mid = make_bill(invoice_number="MID")
        age(mid, 1)
        new = make_bill(invoice_number="NEW")
        make_bill(user_id="user-2", invoice_number="OTHER")

        bills = self.service.list_bills("user-1")
        self.assertEqual([b.id for b in bills], [new.id, mid.id, old.id])

        self.assertEqual(len(self.service.list_bills("user-1", limit=2)), 2)
        self.assertEqual(len(self.service.list_bills("user-1", limit="junk")), 3)
        self.assertEqual(len(self.service.list_bills("user-1", limit=0)), 3)

    def test_list_limit_is_capped(self):
        for _ in range(3):
            make_bill()
        with self.settings(BILLS_MAX_LIST_LIMIT=2):
            self.assertEqual(len(self.service.list_bills("user-1", limit=50)), 2)

    def test_foreign_bill_looks_missing(self):
        foreign = make_bill(user_id="user-2")
        with self.assertRaises(NotFoundError):
            self.service.get_bill("user-1", foreign.id)
        with self.assertRaises(NotFoundError):
            self.service.get_bill("user-1", 999999)

    def test_stats_window_and_reclaimable_gst(self):
        make_bill(transaction_type="purchase", total="1180.00", gst="180.00")
        make_bill(transaction_type="sales", total="590.00", gst="90.00")
        outside = make_bill(transaction_type="purchase", total="5000.00", gst="900.00")
        age(outside, 45)
        make_bill(user_id="user-2", transaction_type="purchase", total="1.00", gst="1.00")

        stats = self.service.get_stats("user-1", 30)

        self.assertEqual(stats["total_bills"], 2)
        self.assertEqual(stats["total_amount"], "1770.00")
        self.assertEqual(stats["total_gst"], "270.00")
        self.assertEqual(stats["purchase_amount"], "1180.00")
        self.assertEqual(stats["sales_amount"], "590.00")
        self.assertEqual(stats["sales_gst"], "90.00")
        self.assertEqual(stats["reclaimable_gst"], "180.00")
        self.assertEqual(stats["period_days"], 30)

        self.assertEqual(self.service.get_stats("user-1", 90)["total_bills"], 3)

    def test_stats_without_purchases(self):
        make_bill(transaction_type="sales", total="100.00", gst="18.00")
        stats = self.service.get_stats("user-1", None)
        self.assertEqual(stats["reclaimable_gst"], "0.00")
        self.assertEqual(stats["purchase_amount"], "0.00")
        self.assertEqual(stats["period_days"], 30)

    def test_stats_empty_user(self):
        stats = self.service.get_stats("nobody", "abc")
        self.assertEqual(stats["total_bills"], 0)
        self.assertEqual(stats["total_amount"], "0.00")

    def test_delete_cascades_items(self):
        bill = make_bill()
        BillItem.objects.create(bill=bill, description="Chair", quantity=1, unit_price=10, amount=10)
        self.service.delete_bill("user-1", bill.id)
        self.assertFalse(BillItem.objects.exists())
        with self.assertRaises(NotFoundError):
            self.service.get_bill("user-1", bill.id)

    def test_delete_foreign_bill_is_not_found(self):
        bill = make_bill(user_id="user-2")
        with self.assertRaises(NotFoundError):
            self.service.delete_bill("user-1", bill.id)
        self.assertTrue(Bill.objects.filter(pk=bill.pk).exists())

    def test_download_infers_generic_content_type(self):
        bill = make_bill(key="user-1/1_scan.png")
        self.storage.retrieve.return_value = RetrievedObject(content=b"png", content_type="application/octet-stream")

        downloaded = self.service.download_bill("user-1", bill.id)

        self.assertEqual(downloaded.content_type, "image/png")
        self.assertEqual(downloaded.filename, "1_scan.png")
        self.storage.retrieve.assert_called_once_with("user-1/1_scan.png", bill.file_url)

    def test_download_keeps_provider_content_type(self):
        bill = make_bill()
        self.storage.retrieve.return_value = RetrievedObject(content=b"%PDF", content_type="application/pdf; charset=binary")
        self.assertEqual(self.service.download_bill("user-1", bill.id).content_type, "application/pdf")

    def test_update_status(self):
        bill = make_bill()
        updated = self.service.update_status("user-1", bill.id, "reviewed")
        self.assertEqual(updated.status, "reviewed")
        self.assertEqual(Bill.objects.get(pk=bill.pk).status, "reviewed")
        with self.assertRaises(ClientInputError):
            self.service.update_status("user-1", bill.id, "paid")


class BillReadApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = IdentityUser(id="user-1", email="owner@example.com")
        self.storage = MagicMock()
        self.service = BillQueryService(storage=self.storage)

    def _call(self, view_cls, method, path, data=None, **kwargs):
        request = getattr(self.factory, method)(path, data, format="json")
        force_authenticate(request, user=self.user)
        return view_cls.as_view(query_service=self.service)(request, **kwargs)

    def test_list_endpoint(self):
        bill = make_bill()
        BillItem.objects.create(bill=bill, description="Pen", quantity=2, unit_price=5, amount=10)

        response = self._call(BillListView, "get", "/api/bills")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["data"]), 1)
        self.assertNotIn("items", response.data["data"][0])

        request = self.factory.get("/api/bills", {"include_items": "1"})
        force_authenticate(request, user=self.user)
        response = BillListView.as_view(query_service=self.service)(request)
        self.assertEqual(len(response.data["data"][0]["items"]), 1)

    def test_detail_endpoint(self):
        bill = make_bill(seller_gstin="29ABCDE1234F1Z5", raw_data={"output": {"x": 1}})
        response = self._call(BillDetailView, "get", f"/api/bills/{bill.id}", bill_id=bill.id)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["raw_data"], {"output": {"x": 1}})
        self.assertTrue(response.data["data"]["seller_gstin_valid"])
        self.assertFalse(response.data["data"]["buyer_gstin_valid"])

    def test_detail_of_foreign_bill_is_404(self):
        bill = make_bill(user_id="user-2")
        response = self._call(BillDetailView, "get", f"/api/bills/{bill.id}", bill_id=bill.id)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"error": "Bill not found"})

    def test_patch_status(self):
        bill = make_bill()
        response = self._call(BillDetailView, "patch", f"/api/bills/{bill.id}", {"status": "disputed"}, bill_id=bill.id)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["status"], "disputed")

        response = self._call(BillDetailView, "patch", f"/api/bills/{bill.id}", {"status": "paid"}, bill_id=bill.id)
        self.assertEqual(response.status_code, 400)

    def test_delete_endpoint(self):
        bill = make_bill()
        response = self._call(BillDetailView, "delete", f"/api/bills/{bill.id}", bill_id=bill.id)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["message"], "Bill deleted successfully")
        response = self._call(BillDetailView, "delete", f"/api/bills/{bill.id}", bill_id=bill.id)
        self.assertEqual(response.status_code, 404)

    def test_download_endpoint_headers(self):
        bill = make_bill()
        self.storage.retrieve.return_value = RetrievedObject(content=b"%PDF-1.4", content_type="application/pdf")

        response = self._call(BillDownloadView, "get", f"/api/bills/{bill.id}/download", bill_id=bill.id)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"%PDF-1.4")
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertEqual(response["Content-Disposition"], 'attachment; filename="1_bill.pdf"')
        self.assertEqual(response["Content-Length"], "8")

    def test_download_legacy_filename_is_sanitized(self):
        bill = make_bill(key="")
        Bill.objects.filter(pk=bill.pk).update(file_url='https://cdn.example.com/bills/user-1/1_my"bill;.pdf')
        self.storage.retrieve.return_value = RetrievedObject(content=b"%PDF", content_type="application/pdf")

        response = self._call(BillDownloadView, "get", f"/api/bills/{bill.id}/download", bill_id=bill.id)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Disposition"], 'attachment; filename="1_my_bill.pdf"')
        self.storage.retrieve.assert_called_once_with(None, 'https://cdn.example.com/bills/user-1/1_my"bill;.pdf')

    def test_download_storage_failure_is_500(self):
        from bills.storage import StorageError
        bill = make_bill()
        self.storage.retrieve.side_effect = StorageError("NoSuchKey")
        response = self._call(BillDownloadView, "get", f"/api/bills/{bill.id}/download", bill_id=bill.id)
        self.assertEqual(response.status_code, 500)
        self.assertNotIn("NoSuchKey", response.data["error"])

    def test_stats_endpoint(self):
        make_bill(transaction_type="purchase", total="118.00", gst="18.00")
        response = self._call(BillStatsView, "get", "/api/bills/stats/user-1", user_id="user-1")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["reclaimable_gst"], "18.00")

    def test_stats_of_other_user_is_404(self):
        make_bill(user_id="user-2")
        response = self._call(BillStatsView, "get", "/api/bills/stats/user-2", user_id="user-2")
        self.assertEqual(response.status_code, 404)


class RoutedBillApiTests(TestCase):
    """Full stack: URLconf, bearer authentication and the exception handler."""

    def setUp(self):
        self.identity = MagicMock()
        self.identity.get_user.return_value = IdentityUser(id="user-1", email="owner@example.com")
        patcher = patch.object(IdentityProviderAuthentication, "identity_client", self.identity)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.auth = {"HTTP_AUTHORIZATION": "Bearer tok"}

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "OK")
        self.identity.get_user.assert_not_called()

    def test_list_through_urlconf(self):
        make_bill(invoice_number="ROUTED-1")
        response = self.client.get("/api/bills", **self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"][0]["invoice_number"], "ROUTED-1")
        self.identity.get_user.assert_called_once_with("tok")

    def test_stats_through_urlconf(self):
        make_bill(transaction_type="purchase", total="118.00", gst="18.00")
        make_bill(transaction_type="sales", total="236.00", gst="36.00")
        response = self.client.get("/api/bills/stats/user-1", {"period": "30"}, **self.auth)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total_bills"], 2)
        self.assertEqual(body["total_amount"], "354.00")
        self.assertEqual(body["reclaimable_gst"], "18.00")

    def test_detail_of_foreign_bill_through_urlconf(self):
        bill = make_bill(user_id="user-2")
        response = self.client.get(f"/api/bills/{bill.id}", **self.auth)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Bill not found"})

    def test_rejected_token_through_urlconf(self):
        self.identity.get_user.side_effect = AuthError()
        response = self.client.get("/api/bills", **self.auth)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid or expired token"})
