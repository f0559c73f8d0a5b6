"""
Error taxonomy for the identity/session core.

Every error a caller can observe derives from AuthError and carries an HTTP
status, a stable machine-readable code and a client-safe detail message.
Storage-layer failures are wrapped as PersistenceError so no driver detail
reaches the caller.
"""

from functools import wraps
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

F = TypeVar("F", bound=Callable[..., Any])


class ConfigurationError(RuntimeError):
    """Raised at startup when required server configuration is missing."""


class AuthError(Exception):
    """Base class for client-facing authentication errors."""

    status_code: int = 400
    code: str = "AUTH_ERROR"
    default_detail: str = "Authentication error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# =============================================================================
# Provider exchange
# =============================================================================


class ProviderError(AuthError):
    """Raised by provider exchange adapters."""

    code = "PROVIDER_ERROR"


class UnsupportedProvider(ProviderError):
    code = "UNSUPPORTED_PROVIDER"
    default_detail = "Unsupported provider"


class ProviderNotConfigured(ProviderError):
    code = "PROVIDER_NOT_CONFIGURED"

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider} OAuth not configured")


class ExchangeFailed(ProviderError):
    code = "EXCHANGE_FAILED"

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Failed to obtain access token from {provider}")


class ProfileFetchFailed(ProviderError):
    code = "PROFILE_FETCH_FAILED"

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Failed to fetch {provider} profile")


# =============================================================================
# Identity resolution
# =============================================================================


class IdentityError(AuthError):
    """Raised when a profile cannot be resolved to a single local user."""

    code = "IDENTITY_ERROR"


class InsufficientIdentifiers(IdentityError):
    code = "INSUFFICIENT_IDENTIFIERS"
    default_detail = "Insufficient identifiers"


class AccountAlreadyLinked(IdentityError):
    status_code = 409
    code = "ACCOUNT_ALREADY_LINKED"
    default_detail = "External account is already linked to a user"


class ConflictingEmail(IdentityError):
    status_code = 409
    code = "CONFLICTING_EMAIL"
    default_detail = "Email is already in use by another account"


class UserNotFound(AuthError):
    status_code = 404
    code = "USER_NOT_FOUND"
    default_detail = "User not found"


# =============================================================================
# Sessions and access tokens
# =============================================================================


class InvalidOrExpiredRefreshToken(AuthError):
    """Single message for unknown, expired, revoked and replayed secrets."""

    status_code = 401
    code = "INVALID_REFRESH_TOKEN"
    default_detail = "Invalid or expired refresh token"


class Unauthorized(AuthError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_detail = "Unauthorized"


class InvalidAccessToken(Unauthorized):
    """Raised by the credential verifier; never says which check failed."""

    code = "INVALID_ACCESS_TOKEN"
    default_detail = "Invalid or expired token"


class PersistenceError(AuthError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_detail = "Internal server error"


def translate_persistence_errors(func: F) -> F:
    """
    Decorator wrapping unexpected SQLAlchemy failures as PersistenceError.

    AuthError subclasses raised inside the wrapped call pass through unchanged.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise PersistenceError() from exc

    return wrapper  # type: ignore


__all__ = [
    "AccountAlreadyLinked",
    "AuthError",
    "ConfigurationError",
    "ConflictingEmail",
    "ExchangeFailed",
    "IdentityError",
    "InsufficientIdentifiers",
    "InvalidAccessToken",
    "InvalidOrExpiredRefreshToken",
    "PersistenceError",
    "ProfileFetchFailed",
    "ProviderError",
    "ProviderNotConfigured",
    "Unauthorized",
    "UnsupportedProvider",
    "UserNotFound",
    "translate_persistence_errors",
]
