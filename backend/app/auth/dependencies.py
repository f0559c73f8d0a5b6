"""
Authentication dependencies for FastAPI routes.

The access guard returns verified claims that handlers receive as an explicit
parameter; nothing is attached to the request. Long-lived components (settings,
token issuer, access guard) are built once at startup and read from
``app.state``.
"""

from collections.abc import Callable

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from authcore.config import Settings
from authcore.guard import AccessGuard
from authcore.identity import IdentityResolver
from authcore.providers import OAuthProvider, get_provider
from authcore.sessions import SessionManager
from authcore.tokens import AccessClaims, TokenIssuer

from ..database import get_db

ProviderFactory = Callable[[str, Settings], OAuthProvider]


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_access_guard(request: Request) -> AccessGuard:
    return request.app.state.access_guard


def get_current_claims(
    authorization: str | None = Header(default=None),
    guard: AccessGuard = Depends(get_access_guard),
) -> AccessClaims:
    """
    Require ``Authorization: Bearer <token>`` and return its verified claims.

    Raises:
        Unauthorized: Missing, malformed, invalid or expired credentials.
    """
    return guard.authenticate(authorization)


def get_provider_factory() -> ProviderFactory:
    """Provider lookup; overridden in tests to avoid network calls."""
    return lambda name, settings: get_provider(name, settings)


def get_session_manager(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> SessionManager:
    return SessionManager(db, settings)


def get_identity_resolver(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> IdentityResolver:
    return IdentityResolver(db, settings)
