"""
Request-time access guard.

The guard turns an ``Authorization`` header into verified claims or an
``Unauthorized`` error. It has no side effects: handlers receive the claims
as an explicit value.
"""

from .errors import Unauthorized
from .tokens import AccessClaims, CredentialVerifier

BEARER_SCHEME = "bearer"


def parse_bearer(header: str | None) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        Unauthorized: Header missing, wrong scheme or empty token.
    """
    if not header:
        raise Unauthorized("Not authenticated")
    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_SCHEME or not token or " " in token:
        raise Unauthorized("Invalid authorization header")
    return token


class AccessGuard:
    """Gate protected requests on a valid access token."""

    def __init__(self, verifier: CredentialVerifier):
        self.verifier = verifier

    def authenticate(self, header: str | None) -> AccessClaims:
        """Return the claims behind a bearer header, or raise Unauthorized."""
        token = parse_bearer(header)
        return self.verifier.verify(token)


def require_owner(claims: AccessClaims, user_id: str) -> None:
    """Reject callers acting on a resource they do not own."""
    if claims.subject != user_id:
        raise Unauthorized("Not allowed to access this resource")


__all__ = ["AccessGuard", "parse_bearer", "require_owner"]
