# webhooks/tokens.py
"""
Hand-off tokens: short-lived JWTs that let the extraction workflow act on
exactly one uploaded file on behalf of one user.
"""
from datetime import timedelta

from django.core.exceptions import ImproperlyConfigured
from rest_framework_simplejwt.backends import TokenBackend
from rest_framework_simplejwt.tokens import Token

HANDOFF_ALGORITHM = "HS256"


class HandoffToken(Token):
    token_type = "handoff"
    lifetime = timedelta(minutes=5)

    # bound per issuer; simplejwt's global backend signs user sessions, not hand-offs
    backend = None

    def get_token_backend(self):
        return self.backend


class HandoffTokenIssuer:
    """
    Signs {userId, userEmail, fileName, fileUrl} with fixed iss/aud claims.
    A missing signing key is fatal at construction time.
    """

    def __init__(self, secret: str, issuer: str, audience: str, lifetime: timedelta = None):
        if not secret:
            raise ImproperlyConfigured("HANDOFF_TOKEN_SECRET must be set to issue hand-off tokens")
        self.backend = TokenBackend(
            HANDOFF_ALGORITHM,
            signing_key=secret,
            audience=audience,
            issuer=issuer,
        )
        self.token_class = type(
            "BoundHandoffToken",
            (HandoffToken,),
            {"backend": self.backend, "lifetime": lifetime or HandoffToken.lifetime},
        )

    def issue(self, *, user_id: str, user_email: str, file_name: str, file_url: str) -> str:
        token = self.token_class()
        token["userId"] = user_id
        token["userEmail"] = user_email
        token["fileName"] = file_name
        token["fileUrl"] = file_url
        return str(token)
