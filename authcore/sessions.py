"""
Refresh session management.

A refresh session backs a long-lived opaque secret. Only the secret's SHA-256
hash is persisted; the plaintext is handed to the caller once and never
stored or logged. Every refresh rotates: the presented session is revoked and
a successor is created in the same transaction, so a captured secret works at
most once.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .constants import REFRESH_SECRET_BYTES
from .errors import InvalidOrExpiredRefreshToken, translate_persistence_errors
from .logging import get_logger, log_boundary
from .models import RefreshSession, User, utcnow
from .repositories import SessionRepository, UserRepository

logger = get_logger("sessions")


def hash_secret(secret: str) -> str:
    """SHA-256 hex digest of a refresh secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def generate_secret() -> str:
    """Opaque URL-safe refresh secret with 48 bytes of entropy."""
    return secrets.token_urlsafe(REFRESH_SECRET_BYTES)


@dataclass(frozen=True)
class IssuedSession:
    """A freshly created session; ``secret`` is only ever available here."""

    session_id: str
    user_id: str
    secret: str
    expires_at: datetime


@dataclass(frozen=True)
class RotatedSession:
    """Result of a successful refresh."""

    user: User
    session_id: str
    secret: str
    expires_at: datetime


def _issued_fields(issued: IssuedSession) -> dict:
    return {"user_id": issued.user_id, "session_id": issued.session_id}


def _rotated_fields(rotated: RotatedSession) -> dict:
    return {"user_id": rotated.user.id, "session_id": rotated.session_id}


def _revoked_fields(found: bool) -> dict:
    return {"found": found}


class SessionManager:
    """Create, rotate and revoke refresh sessions."""

    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.sessions = SessionRepository(session)
        self.users = UserRepository(session)

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(days=self.settings.refresh_session_ttl_days)

    @log_boundary("session_manager", logger=logger, result_fields=_issued_fields)
    @translate_persistence_errors
    def create_session(
        self,
        user_id: str,
        ttl: timedelta | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> IssuedSession:
        """Create a refresh session and return its one-time plaintext secret."""
        return self._insert(user_id, ttl or self.default_ttl, ip, user_agent)

    @log_boundary("session_manager", logger=logger, result_fields=_rotated_fields)
    @translate_persistence_errors
    def refresh(self, secret: str) -> RotatedSession:
        """
        Validate a refresh secret and rotate its session.

        Raises:
            InvalidOrExpiredRefreshToken: Unknown, expired, revoked or already
                rotated secret. The causes are indistinguishable to the caller.
        """
        if not secret:
            raise InvalidOrExpiredRefreshToken()

        now = utcnow()
        current = self.sessions.get_active_by_hash(hash_secret(secret), now)
        if current is None:
            raise InvalidOrExpiredRefreshToken()

        # Losing a concurrent rotation of the same session looks like a replay
        if not self.sessions.revoke_if_active(current.id, now):
            raise InvalidOrExpiredRefreshToken()

        user = self.users.get_by_id(current.user_id)
        if user is None:
            raise InvalidOrExpiredRefreshToken()

        issued = self._insert(user.id, self.default_ttl, current.ip, current.user_agent)
        return RotatedSession(
            user=user,
            session_id=issued.session_id,
            secret=issued.secret,
            expires_at=issued.expires_at,
        )

    @log_boundary("session_manager", logger=logger, result_fields=_revoked_fields)
    @translate_persistence_errors
    def revoke(self, session_id: str) -> bool:
        """Revoke a session by id. Idempotent; returns whether it exists."""
        return self.sessions.revoke(session_id)

    @log_boundary("session_manager", logger=logger, result_fields=_revoked_fields)
    @translate_persistence_errors
    def revoke_by_secret(self, secret: str) -> bool:
        """Revoke the session behind a plaintext secret (logout by cookie)."""
        if not secret:
            return False
        return self.sessions.revoke_by_hash(hash_secret(secret))

    @translate_persistence_errors
    def active_sessions(self, user_id: str) -> list[RefreshSession]:
        """List a user's sessions still usable for refresh."""
        return self.sessions.list_active_for_user(user_id)

    def _insert(
        self, user_id: str, ttl: timedelta, ip: str | None, user_agent: str | None
    ) -> IssuedSession:
        secret = generate_secret()
        expires_at = utcnow() + ttl
        record = self.sessions.create(
            user_id=user_id,
            token_hash=hash_secret(secret),
            expires_at=expires_at,
            ip=ip,
            user_agent=user_agent[:512] if user_agent else None,
        )
        return IssuedSession(
            session_id=record.id,
            user_id=user_id,
            secret=secret,
            expires_at=expires_at,
        )


__all__ = [
    "IssuedSession",
    "RotatedSession",
    "SessionManager",
    "generate_secret",
    "hash_secret",
]
