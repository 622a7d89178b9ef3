# common/authentication.py
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from .exceptions import AuthError

AUTH_HEADER_TYPE = "Bearer"


def get_bearer_token(request):
    """Return the raw bearer token from the Authorization header, or None."""
    header = get_authorization_header(request).decode("latin-1").strip()
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0] != AUTH_HEADER_TYPE:
        raise AuthError("Missing or invalid Authorization header")
    return parts[1]


class IdentityProviderAuthentication(BaseAuthentication):
    """
    Forwards the bearer token to the identity provider.
    request.user becomes an IdentityUser, request.auth the raw token.
    """

    identity_client = None

    def get_identity_client(self):
        if self.identity_client is not None:
            return self.identity_client
        from bills.providers import identity_client
        return identity_client()

    def authenticate(self, request):
        token = get_bearer_token(request)
        if token is None:
            return None
        user = self.get_identity_client().get_user(token)
        return user, token

    def authenticate_header(self, request):
        return AUTH_HEADER_TYPE
