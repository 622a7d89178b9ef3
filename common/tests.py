"""
Tests for identity lookup, bearer authentication, error mapping and CORS.
"""
from unittest.mock import MagicMock

import requests
from django.db import DatabaseError
from django.http import Http404
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import serializers
from rest_framework.test import APIRequestFactory

from common.authentication import IdentityProviderAuthentication, get_bearer_token
from common.exceptions import (
    GENERIC_SERVER_ERROR,
    AuthError,
    ClientInputError,
    NotFoundError,
    UpstreamError,
    api_exception_handler,
)
from common.identity import IdentityClient, IdentityProviderError, IdentityUser


def _response(status_code, body=None, text=""):
    response = MagicMock(status_code=status_code, text=text)
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


class IdentityClientTests(SimpleTestCase):
    def setUp(self):
        self.session = MagicMock()
        self.client = IdentityClient("https://id.example.com/", api_key="anon-key", session=self.session)

    def test_valid_token(self):
        self.session.get.return_value = _response(200, {"id": "abc-123", "email": "a@example.com"})
        user = self.client.get_user("tok")
        self.assertEqual(user, IdentityUser(id="abc-123", email="a@example.com"))
        args, kwargs = self.session.get.call_args
        self.assertEqual(args[0], "https://id.example.com/auth/v1/user")
        self.assertEqual(kwargs["headers"], {"Authorization": "Bearer tok", "apikey": "anon-key"})

    def test_rejected_token(self):
        for code in (401, 403):
            self.session.get.return_value = _response(code)
            with self.subTest(code=code), self.assertRaises(AuthError):
                self.client.get_user("expired")

    def test_provider_failure(self):
        self.session.get.return_value = _response(503, text="maintenance")
        with self.assertRaises(IdentityProviderError):
            self.client.get_user("tok")

    def test_provider_unreachable(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError("dns")
        with self.assertRaises(IdentityProviderError):
            self.client.get_user("tok")

    def test_non_json_body(self):
        self.session.get.return_value = _response(200, ValueError("html"))
        with self.assertRaises(IdentityProviderError):
            self.client.get_user("tok")

    def test_missing_user_id(self):
        self.session.get.return_value = _response(200, {"email": "a@example.com"})
        with self.assertRaises(AuthError):
            self.client.get_user("tok")


class BearerAuthenticationTests(SimpleTestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.identity = MagicMock()
        self.auth = IdentityProviderAuthentication()
        self.auth.identity_client = self.identity

    def test_no_header_is_anonymous(self):
        request = self.factory.get("/api/bills")
        self.assertIsNone(self.auth.authenticate(request))
        self.identity.get_user.assert_not_called()

    def test_malformed_header(self):
        for header in ("Token abc", "Bearer", "Bearer a b"):
            request = self.factory.get("/api/bills", HTTP_AUTHORIZATION=header)
            with self.subTest(header=header), self.assertRaises(AuthError):
                get_bearer_token(request)

    def test_valid_bearer(self):
        user = IdentityUser(id="u1")
        self.identity.get_user.return_value = user
        request = self.factory.get("/api/bills", HTTP_AUTHORIZATION="Bearer tok")
        self.assertEqual(self.auth.authenticate(request), (user, "tok"))
        self.identity.get_user.assert_called_once_with("tok")

    def test_authenticate_header(self):
        self.assertEqual(self.auth.authenticate_header(None), "Bearer")


class ExceptionHandlerTests(SimpleTestCase):
    def _handle(self, exc):
        return api_exception_handler(exc, {"view": None})

    def test_client_input(self):
        response = self._handle(ClientInputError("No file uploaded"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {"error": "No file uploaded"})

    def test_validation_error_keeps_field_errors(self):
        response = self._handle(serializers.ValidationError({"file": ["No file uploaded"]}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "No file uploaded")
        self.assertIn("file", response.data["errors"])

    def test_auth_error(self):
        response = self._handle(AuthError())
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data, {"error": "Invalid or expired token"})

    def test_not_found(self):
        self.assertEqual(self._handle(NotFoundError()).status_code, 404)
        self.assertEqual(self._handle(Http404()).data, {"error": "Bill not found"})

    def test_upstream_hides_internal_message(self):
        response = self._handle(UpstreamError("s3 secret bucket name"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": GENERIC_SERVER_ERROR})

    def test_database_and_unexpected_errors(self):
        self.assertEqual(self._handle(DatabaseError("locked")).status_code, 500)
        response = self._handle(KeyError("boom"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": GENERIC_SERVER_ERROR})


@override_settings(DEBUG=False, FRONTEND_URL="https://app.example.com")
class HealthAndCorsTests(TestCase):
    def test_health_needs_no_auth(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "OK")

    def test_api_requires_bearer(self):
        response = self.client.get("/api/bills")
        self.assertEqual(response.status_code, 401)
        self.assertIn("error", response.json())

    def test_preflight_for_frontend(self):
        response = self.client.options(
            "/api/bills",
            HTTP_ORIGIN="https://app.example.com",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="GET",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "https://app.example.com")
        self.assertIn("Authorization", response["Access-Control-Allow-Headers"])

    def test_unknown_origin_gets_no_cors_headers(self):
        response = self.client.get("/health", HTTP_ORIGIN="https://evil.example.com")
        self.assertNotIn("Access-Control-Allow-Origin", response)

    def test_known_origin_sees_content_disposition(self):
        response = self.client.get("/health", HTTP_ORIGIN="https://app.example.com")
        self.assertEqual(response["Access-Control-Expose-Headers"], "Content-Disposition")
        self.assertIn("Origin", response["Vary"])
