"""
Access token issuing and verification.

Access tokens are HS256 JWTs carrying the user id (``sub``) and email, with a
lifetime of minutes. They are independent of refresh sessions, which live for
weeks.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from .config import Settings, get_settings
from .errors import ConfigurationError, InvalidAccessToken
from .logging import get_logger

logger = get_logger("tokens")


class AccessClaims(BaseModel):
    """Decoded claims of a verified access token."""

    model_config = ConfigDict(frozen=True)

    subject: str
    email: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime
    token_id: str | None = None


def _require_secret(settings: Settings) -> str:
    if not settings.jwt_secret_key:
        raise ConfigurationError("JWT_SECRET_KEY is not set")
    return settings.jwt_secret_key


class TokenIssuer:
    """Mint short-lived signed access tokens."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._secret = _require_secret(self.settings)

    def issue(self, subject: str, email: str | None = None, expires_minutes: int | None = None) -> str:
        """
        Create a signed JWT access token with expiration and JTI.

        Args:
            subject: User id placed in the ``sub`` claim.
            email: User email, may be None.
            expires_minutes: Optional override for expiration window in minutes.

        Returns:
            Encoded JWT string.
        """
        if expires_minutes is None:
            expires_minutes = self.settings.access_token_expire_minutes
        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=expires_minutes)
        claims: dict[str, Any] = {
            "sub": subject,
            "email": email,
            "iat": now,
            "exp": expire,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(claims, self._secret, algorithm=self.settings.jwt_algorithm)


class CredentialVerifier:
    """Check signature and expiry of access tokens. Fails closed."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._secret = _require_secret(self.settings)

    def verify(self, token: str) -> AccessClaims:
        """
        Decode and validate an access token.

        Raises:
            InvalidAccessToken: For a bad signature, expired or malformed
                token alike; the reason is logged, never returned.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.settings.jwt_algorithm])
        except JWTError as exc:
            logger.info("access_token_rejected", reason=type(exc).__name__)
            raise InvalidAccessToken() from None

        subject = payload.get("sub")
        exp = payload.get("exp")
        if not subject or not isinstance(subject, str) or exp is None:
            logger.info("access_token_rejected", reason="missing_claims")
            raise InvalidAccessToken()

        try:
            iat = payload.get("iat")
            return AccessClaims(
                subject=subject,
                email=payload.get("email"),
                issued_at=datetime.fromtimestamp(iat, tz=timezone.utc) if iat is not None else None,
                expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
                token_id=payload.get("jti"),
            )
        except (TypeError, ValueError):
            logger.info("access_token_rejected", reason="malformed_claims")
            raise InvalidAccessToken() from None


__all__ = ["AccessClaims", "CredentialVerifier", "TokenIssuer"]
