"""
Authentication router: OAuth callback, refresh rotation and logout.

The access token is returned in the body. The refresh secret only ever
travels in an HttpOnly cookie (or, for API clients, the refresh request
body).
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, Response

from authcore.config import Settings
from authcore.errors import InvalidOrExpiredRefreshToken
from authcore.identity import IdentityResolver
from authcore.logging import get_logger
from authcore.sessions import SessionManager
from authcore.tokens import AccessClaims, TokenIssuer

from ..auth.dependencies import (
    ProviderFactory,
    get_app_settings,
    get_current_claims,
    get_identity_resolver,
    get_provider_factory,
    get_session_manager,
    get_token_issuer,
)
from ..schemas import (
    AuthResponse,
    LogoutResponse,
    OAuthCallbackRequest,
    RefreshRequest,
    SessionListResponse,
    SessionSummary,
    UserResponse,
)

logger = get_logger("auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def _get_client_ip(request: Request) -> str | None:
    """
    Get the client IP address from the request.

    Handles X-Forwarded-For header for reverse proxy setups.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64]
    return request.client.host if request.client else None


def _set_refresh_cookie(response: Response, settings: Settings, secret: str, expires_at: datetime) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=secret,
        httponly=True,  # Cannot be accessed by JavaScript
        secure=settings.is_production,  # Only send over HTTPS in production
        samesite="lax",
        expires=expires_at,
        path="/",
    )


def _clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path="/",
        secure=settings.is_production,
        httponly=True,
        samesite="lax",
    )


def _complete_login(
    provider_name: str,
    code: str,
    request: Request,
    response: Response,
    settings: Settings,
    provider_factory: ProviderFactory,
    resolver: IdentityResolver,
    sessions: SessionManager,
    issuer: TokenIssuer,
) -> AuthResponse:
    """Code exchange → identity resolution → new session → access token."""
    provider = provider_factory(provider_name, settings)
    profile = provider.authenticate(code)

    resolution = resolver.resolve(profile)
    user = resolution.user

    issued = sessions.create_session(
        user.id,
        ip=_get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    access_token = issuer.issue(user.id, user.email)
    _set_refresh_cookie(response, settings, issued.secret, issued.expires_at)

    logger.info(
        "login_success",
        user_id=user.id,
        provider=provider.name,
        created_user=resolution.created_user,
    )
    return AuthResponse(access_token=access_token, user=UserResponse.from_user(user))


@router.post("/oauth/callback", response_model=AuthResponse)
def oauth_callback(
    payload: OAuthCallbackRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    sessions: SessionManager = Depends(get_session_manager),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Exchange an authorization code posted by the frontend."""
    return _complete_login(
        payload.provider, payload.code, request, response, settings, provider_factory, resolver, sessions, issuer
    )


@router.get("/{provider}/callback", response_model=AuthResponse)
def provider_callback(
    provider: str,
    request: Request,
    response: Response,
    code: str = Query(..., min_length=1, max_length=2048),
    settings: Settings = Depends(get_app_settings),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    sessions: SessionManager = Depends(get_session_manager),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Provider redirect target carrying the authorization code in the query."""
    return _complete_login(
        provider, code, request, response, settings, provider_factory, resolver, sessions, issuer
    )


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionManager = Depends(get_session_manager),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Rotate a refresh session and mint a new access token.

    The secret comes from the request body when given, else from the cookie.
    """
    secret = (payload.refresh_token if payload else None) or request.cookies.get(
        settings.refresh_cookie_name
    )
    if not secret:
        raise InvalidOrExpiredRefreshToken()

    rotated = sessions.refresh(secret)
    access_token = issuer.issue(rotated.user.id, rotated.user.email)
    _set_refresh_cookie(response, settings, rotated.secret, rotated.expires_at)
    return AuthResponse(access_token=access_token, user=UserResponse.from_user(rotated.user))


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Revoke the session behind the refresh secret, if any, and clear the cookie."""
    secret = (payload.refresh_token if payload else None) or request.cookies.get(
        settings.refresh_cookie_name
    )
    if secret:
        sessions.revoke_by_secret(secret)
    _clear_refresh_cookie(response, settings)
    return LogoutResponse()


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    claims: AccessClaims = Depends(get_current_claims),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Active refresh sessions of the caller."""
    active = sessions.active_sessions(claims.subject)
    return SessionListResponse(
        sessions=[SessionSummary.model_validate(s) for s in active],
        total=len(active),
    )


@router.get("/health")
def auth_health():
    return {"status": "ok", "service": "auth"}
