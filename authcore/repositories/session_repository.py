"""Refresh session repository."""

from datetime import datetime

from sqlalchemy import update

from authcore.models import RefreshSession, utcnow

from .base import BaseRepository


class SessionRepository(BaseRepository[RefreshSession]):
    """Repository for refresh sessions."""

    model = RefreshSession

    def get_active_by_hash(self, token_hash: str, now: datetime | None = None) -> RefreshSession | None:
        """Get a session usable for refresh: unrevoked and unexpired."""
        now = now or utcnow()
        return (
            self.session.query(RefreshSession)
            .filter(
                RefreshSession.token_hash == token_hash,
                RefreshSession.revoked.is_(False),
                RefreshSession.expires_at > now,
            )
            .first()
        )

    def revoke_if_active(self, session_id: str, now: datetime | None = None) -> bool:
        """
        Revoke a session only if it is still usable.

        Returns True for exactly one caller when several race on the same
        session: the conditional UPDATE matches zero rows for the losers.
        """
        now = now or utcnow()
        result = self.session.execute(
            update(RefreshSession)
            .where(
                RefreshSession.id == session_id,
                RefreshSession.revoked.is_(False),
                RefreshSession.expires_at > now,
            )
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def revoke(self, session_id: str) -> bool:
        """Mark a session revoked. Idempotent; returns whether it exists."""
        result = self.session.execute(
            update(RefreshSession)
            .where(RefreshSession.id == session_id)
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def revoke_by_hash(self, token_hash: str) -> bool:
        """Mark the session owning a secret hash revoked. Idempotent."""
        result = self.session.execute(
            update(RefreshSession)
            .where(RefreshSession.token_hash == token_hash)
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_active_for_user(self, user_id: str, now: datetime | None = None) -> list[RefreshSession]:
        """List a user's usable sessions, newest first."""
        now = now or utcnow()
        return (
            self.session.query(RefreshSession)
            .filter(
                RefreshSession.user_id == user_id,
                RefreshSession.revoked.is_(False),
                RefreshSession.expires_at > now,
            )
            .order_by(RefreshSession.created_at.desc())
            .all()
        )
