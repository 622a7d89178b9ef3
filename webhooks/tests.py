"""
Tests for hand-off tokens and the extraction webhook client.
"""
from datetime import timedelta
from unittest.mock import MagicMock

import requests
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase
from rest_framework_simplejwt.backends import TokenBackend
from rest_framework_simplejwt.exceptions import TokenBackendError

from webhooks.services import ExtractionTimeout, ExtractionWebhookClient, ExtractionWebhookError
from webhooks.tokens import HandoffTokenIssuer

SECRET = "test-handoff-secret-with-enough-length"


class HandoffTokenTests(SimpleTestCase):
    def setUp(self):
        self.issuer = HandoffTokenIssuer(SECRET, issuer="bill-ledger-backend", audience="n8n")

    def _issue(self):
        return self.issuer.issue(
            user_id="user-1",
            user_email="owner@example.com",
            file_name="user-1/1_invoice.pdf",
            file_url="https://cdn.example.com/bills/user-1/1_invoice.pdf",
        )

    def test_token_claims(self):
        raw = self._issue()
        payload = TokenBackend(
            "HS256", signing_key=SECRET, audience="n8n", issuer="bill-ledger-backend"
        ).decode(raw, verify=True)

        self.assertEqual(payload["userId"], "user-1")
        self.assertEqual(payload["userEmail"], "owner@example.com")
        self.assertEqual(payload["fileName"], "user-1/1_invoice.pdf")
        self.assertEqual(payload["fileUrl"], "https://cdn.example.com/bills/user-1/1_invoice.pdf")
        self.assertEqual(payload["iss"], "bill-ledger-backend")
        self.assertEqual(payload["aud"], "n8n")
        self.assertEqual(payload["token_type"], "handoff")
        self.assertAlmostEqual(payload["exp"] - payload["iat"], 300, delta=2)

    def test_wrong_audience_is_rejected(self):
        backend = TokenBackend("HS256", signing_key=SECRET, audience="someone-else", issuer="bill-ledger-backend")
        with self.assertRaises(TokenBackendError):
            backend.decode(self._issue(), verify=True)

    def test_expired_token_is_rejected(self):
        issuer = HandoffTokenIssuer(SECRET, issuer="bill-ledger-backend", audience="n8n",
                                    lifetime=timedelta(seconds=-1))
        raw = issuer.issue(user_id="u", user_email="", file_name="k", file_url="https://x/k")
        with self.assertRaises(TokenBackendError):
            self.issuer.backend.decode(raw, verify=True)

    def test_missing_secret_is_fatal(self):
        with self.assertRaises(ImproperlyConfigured):
            HandoffTokenIssuer("", issuer="bill-ledger-backend", audience="n8n")


class ExtractionWebhookClientTests(SimpleTestCase):
    def setUp(self):
        self.session = MagicMock()
        self.client = ExtractionWebhookClient("https://workflow.example.com/hook", timeout=120, session=self.session)

    def _process(self):
        return self.client.process(
            file_url="https://cdn.example.com/bills/user-1/1_a.pdf",
            file_name="user-1/1_a.pdf",
            file_type="application/pdf",
            user_id="user-1",
            user_email="owner@example.com",
            token="tok",
        )

    def test_posts_payload_with_bearer_token(self):
        self.session.post.return_value = MagicMock(status_code=200, json=MagicMock(return_value={"output": {"a": 1}}))

        body = self._process()

        self.assertEqual(body, {"output": {"a": 1}})
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "https://workflow.example.com/hook")
        self.assertEqual(kwargs["json"], {
            "fileUrl": "https://cdn.example.com/bills/user-1/1_a.pdf",
            "fileName": "user-1/1_a.pdf",
            "fileType": "application/pdf",
            "userId": "user-1",
            "userEmail": "owner@example.com",
        })
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["headers"]["Content-Type"], "application/json")
        self.assertEqual(kwargs["timeout"], 120)

    def test_timeout(self):
        self.session.post.side_effect = requests.exceptions.Timeout("read timed out")
        with self.assertRaises(ExtractionTimeout):
            self._process()
        self.assertEqual(self.session.post.call_count, 1)

    def test_connection_error(self):
        self.session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(ExtractionWebhookError):
            self._process()

    def test_non_2xx(self):
        self.session.post.return_value = MagicMock(status_code=502, text="bad gateway")
        with self.assertRaises(ExtractionWebhookError) as ctx:
            self._process()
        self.assertIn("502", str(ctx.exception))
        self.assertEqual(ctx.exception.status_code, 500)

    def test_non_json_body(self):
        self.session.post.return_value = MagicMock(status_code=200, json=MagicMock(side_effect=ValueError("no json")))
        with self.assertRaises(ExtractionWebhookError):
            self._process()

    def test_unconfigured_url(self):
        client = ExtractionWebhookClient("", session=self.session)
        with self.assertRaises(ExtractionWebhookError):
            client.process(file_url="u", file_name="n", file_type="application/pdf",
                           user_id="1", user_email="", token="t")
        self.session.post.assert_not_called()
