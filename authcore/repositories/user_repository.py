"""User and linked-account repositories."""

from datetime import datetime
from typing import Any

from sqlalchemy.orm import selectinload

from authcore.models import OAuthAccount, User, utcnow

from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    model = User

    def get_by_email(self, email: str) -> User | None:
        """Get user by exact email."""
        return self.session.query(User).filter(User.email == email).first()

    def get_with_accounts(self, user_id: str) -> User | None:
        """Get user with linked accounts eagerly loaded."""
        return (
            self.session.query(User)
            .options(selectinload(User.oauth_accounts))
            .filter(User.id == user_id)
            .first()
        )

    def touch_login(self, user: User, login_at: datetime | None = None) -> User:
        """Bump the last-login timestamp."""
        user.last_login_at = login_at or utcnow()
        self.session.flush()
        return user

    def apply_profile(
        self,
        user: User,
        *,
        email: str | None = None,
        email_verified: bool = False,
        display_name: str | None = None,
        avatar_url: str | None = None,
        login_at: datetime | None = None,
    ) -> User:
        """
        Refresh a user from a provider profile.

        Only non-empty values overwrite; a missing field never clears what is
        stored. A changed email takes the verified flag of the new profile,
        except that a verified email is never replaced by an unverified one.
        """
        if email:
            if email == user.email:
                user.email_verified = user.email_verified or email_verified
            elif email_verified or not (user.email and user.email_verified):
                user.email = email
                user.email_verified = email_verified
        if display_name:
            user.display_name = display_name
        if avatar_url:
            user.avatar_url = avatar_url
        return self.touch_login(user, login_at)

    def update_profile(
        self,
        user: User,
        display_name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        """Apply a user-initiated profile edit."""
        if display_name is not None:
            user.display_name = display_name
        if avatar_url is not None:
            user.avatar_url = avatar_url
        self.session.flush()
        return user


class OAuthAccountRepository(BaseRepository[OAuthAccount]):
    """Repository for linked external identities."""

    model = OAuthAccount

    def get_by_provider_account(self, provider: str, provider_account_id: str) -> OAuthAccount | None:
        """Get the account claiming an external identity."""
        return (
            self.session.query(OAuthAccount)
            .filter(
                OAuthAccount.provider == provider,
                OAuthAccount.provider_account_id == provider_account_id,
            )
            .first()
        )

    def link(
        self,
        user: User,
        provider: str,
        provider_account_id: str,
        raw_profile: dict[str, Any] | None = None,
    ) -> OAuthAccount:
        """Bind an external identity to a user."""
        account = OAuthAccount(
            user=user,
            provider=provider,
            provider_account_id=provider_account_id,
            raw_profile=raw_profile,
        )
        self.session.add(account)
        self.session.flush()
        return account

    def refresh_snapshot(self, account: OAuthAccount, raw_profile: dict[str, Any] | None) -> OAuthAccount:
        """Store the latest raw provider profile."""
        if raw_profile is not None:
            account.raw_profile = raw_profile
        account.updated_at = utcnow()
        self.session.flush()
        return account
