"""
Tests for the server-rendered dashboard.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from bills.models import Bill
from bills.queries import BillQueryService
from bills.storage import RetrievedObject
from common.exceptions import AuthError, UpstreamError
from common.identity import IdentityUser


class DashboardTestBase(TestCase):
    def setUp(self):
        self.user = IdentityUser(id="user-1", email="owner@example.com")
        self.providers = MagicMock()
        self.providers.identity_client.return_value.get_user.return_value = self.user
        self.providers.query_service.return_value = BillQueryService(storage=MagicMock())

        patcher = patch("dashboard.views.providers", self.providers)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.client.cookies["access_token"] = "tok"

    def make_bill(self, user_id="user-1", **kwargs):
        return Bill.objects.create(
            user_id=user_id,
            file_url="https://cdn.example.com/bills/user-1/1_a.pdf",
            file_key="user-1/1_a.pdf",
            invoice_date=timezone.localdate(),
            total_amount=Decimal("118.00"),
            gst_amount=Decimal("18.00"),
            **kwargs,
        )


class DashboardAuthTests(DashboardTestBase):
    def test_no_cookie_redirects_to_signin(self):
        self.client.cookies.pop("access_token")
        response = self.client.get(reverse("dashboard:bill-list"))
        self.assertRedirects(response, reverse("dashboard:signin"), fetch_redirect_response=False)

    def test_expired_token_clears_cookie(self):
        self.providers.identity_client.return_value.get_user.side_effect = AuthError()
        response = self.client.get(reverse("dashboard:bill-list"))
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response["Location"].endswith("?expired=1"))
        self.assertEqual(response.cookies["access_token"].value, "")

    def test_identity_outage_is_503(self):
        self.providers.identity_client.return_value.get_user.side_effect = UpstreamError("down")
        response = self.client.get(reverse("dashboard:bill-list"))
        self.assertEqual(response.status_code, 503)

    def test_signin_sets_cookie(self):
        response = self.client.post(reverse("dashboard:signin"), {"access_token": "new-token"})
        self.assertRedirects(response, reverse("dashboard:bill-list"), fetch_redirect_response=False)
        self.assertEqual(response.cookies["access_token"].value, "new-token")
        self.assertTrue(response.cookies["access_token"]["httponly"])


class DashboardPageTests(DashboardTestBase):
    def test_bill_list_shows_own_bills_and_stats(self):
        self.make_bill(invoice_number="MINE-1")
        self.make_bill(user_id="user-2", invoice_number="THEIRS-1")

        response = self.client.get(reverse("dashboard:bill-list"), {"period": "7"})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "MINE-1")
        self.assertNotContains(response, "THEIRS-1")
        self.assertEqual(response.context["stats"]["reclaimable_gst"], "18.00")
        self.assertEqual(response.context["stats"]["period_days"], 7)

    def test_detail_of_foreign_bill_is_404(self):
        bill = self.make_bill(user_id="user-2")
        response = self.client.get(reverse("dashboard:bill-detail", args=[bill.id]))
        self.assertEqual(response.status_code, 404)

    def test_detail(self):
        bill = self.make_bill(invoice_number="INV-9", seller_gstin="29ABCDE1234F1Z5")
        response = self.client.get(reverse("dashboard:bill-detail", args=[bill.id]))
        self.assertContains(response, "INV-9")
        self.assertTrue(response.context["seller_gstin_valid"])

    def test_download_uses_cookie_identity(self):
        bill = self.make_bill()
        storage = self.providers.query_service.return_value.storage
        storage.retrieve.return_value = RetrievedObject(content=b"%PDF", content_type="application/pdf")

        response = self.client.get(reverse("dashboard:bill-download", args=[bill.id]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"%PDF")
        self.assertEqual(response["Content-Disposition"], 'attachment; filename="1_a.pdf"')

    def test_delete(self):
        bill = self.make_bill()
        response = self.client.post(reverse("dashboard:bill-delete", args=[bill.id]))
        self.assertRedirects(response, reverse("dashboard:bill-list"), fetch_redirect_response=False)
        self.assertFalse(Bill.objects.filter(pk=bill.pk).exists())

    def test_delete_requires_post(self):
        bill = self.make_bill()
        response = self.client.get(reverse("dashboard:bill-delete", args=[bill.id]))
        self.assertEqual(response.status_code, 405)
        self.assertTrue(Bill.objects.filter(pk=bill.pk).exists())


class DashboardUploadTests(DashboardTestBase):
    def _pdf(self):
        return SimpleUploadedFile("invoice.pdf", b"%PDF-1.4", content_type="application/pdf")

    def test_upload_success(self):
        bill = self.make_bill(invoice_number="INV-UP")
        self.providers.ingestion_service.return_value.ingest.return_value = MagicMock(bill=bill)

        response = self.client.post(reverse("dashboard:upload"), {"file": self._pdf(), "billType": "sales"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["state"], "success")
        kwargs = self.providers.ingestion_service.return_value.ingest.call_args.kwargs
        self.assertEqual(kwargs["transaction_type"], "sales")
        self.assertEqual(kwargs["user"], self.user)

    def test_upload_without_file(self):
        response = self.client.post(reverse("dashboard:upload"), {"billType": "sales"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.context["error"], "No file uploaded")
        self.providers.ingestion_service.return_value.ingest.assert_not_called()

    def test_upload_processing_failure(self):
        self.providers.ingestion_service.return_value.ingest.side_effect = UpstreamError("timeout")
        response = self.client.post(reverse("dashboard:upload"), {"file": self._pdf()})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.context["state"], "error")
