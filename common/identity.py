# common/identity.py
"""
Client for the external identity provider. Bearer tokens are never decoded
locally; the provider is asked who the token belongs to.
"""
import logging
from dataclasses import dataclass

import requests

from .exceptions import AuthError, UpstreamError

logger = logging.getLogger(__name__)


class IdentityProviderError(UpstreamError):
    pass


@dataclass(frozen=True)
class IdentityUser:
    """Authenticated caller as reported by the identity provider."""
    id: str
    email: str = ""

    is_authenticated = True
    is_anonymous = False
    is_active = True
    is_staff = False
    is_superuser = False

    @property
    def pk(self):
        return self.id

    @property
    def username(self):
        return self.email or self.id

    def __str__(self):
        return self.username


class IdentityClient:
    """
    GET <base_url>/auth/v1/user with the caller's bearer token.
    200 -> IdentityUser, 401/403 -> AuthError, anything else -> IdentityProviderError.
    """

    USER_PATH = "/auth/v1/user"

    def __init__(self, base_url: str, api_key: str = "", timeout: int = 10, session=None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_user(self, access_token: str) -> IdentityUser:
        if not self.base_url:
            raise IdentityProviderError("IDENTITY_PROVIDER_URL is not configured")

        headers = {"Authorization": f"Bearer {access_token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            response = self.session.get(
                f"{self.base_url}{self.USER_PATH}",
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if response.status_code in (401, 403):
            logger.info("Identity provider rejected bearer token (HTTP %s)", response.status_code)
            raise AuthError()
        if not 200 <= response.status_code < 300:
            raise IdentityProviderError(
                f"Identity provider returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise IdentityProviderError("Identity provider returned a non-JSON body") from e

        user_id = (data or {}).get("id")
        if not user_id:
            raise AuthError()
        return IdentityUser(id=str(user_id), email=data.get("email") or "")
