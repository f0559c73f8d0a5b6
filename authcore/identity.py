"""
Identity resolution: find or create the local user behind a provider profile.

Resolution order, first match wins:
1. an account already linked to (provider, provider_account_id)
2. an existing user with the profile's email, verified on both sides (merge:
   link a new account)
3. a brand-new user with its first linked account

Profiles without an external identity fall back to an upsert by email, and
profiles with neither identity nor email are rejected.

Uniqueness constraints on users.email and on (provider, provider_account_id)
are the authority under concurrency: a violation rolls the transaction back
and surfaces as ConflictingEmail or AccountAlreadyLinked.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .constants import ROLE_USER
from .errors import (
    AccountAlreadyLinked,
    ConflictingEmail,
    IdentityError,
    InsufficientIdentifiers,
    translate_persistence_errors,
)
from .logging import get_logger, log_boundary
from .models import OAuthAccount, User, utcnow
from .providers import EmailProfile, NormalizedProfile
from .repositories import OAuthAccountRepository, UserRepository

logger = get_logger("identity")


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a profile."""

    user: User
    created_user: bool = False
    linked_account: bool = False


def _resolution_fields(resolution: Resolution) -> dict:
    return {
        "user_id": resolution.user.id,
        "created_user": resolution.created_user,
        "linked_account": resolution.linked_account,
    }


class IdentityResolver:
    """Unify external identities into local users."""

    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.users = UserRepository(session)
        self.accounts = OAuthAccountRepository(session)

    @log_boundary("identity_resolver", logger=logger, result_fields=_resolution_fields)
    @translate_persistence_errors
    def resolve(self, profile: NormalizedProfile | EmailProfile) -> Resolution:
        """
        Resolve a profile to a local user, creating or linking as needed.

        Raises:
            InsufficientIdentifiers: No external identity and no email.
            ConflictingEmail: The email belongs to another user and cannot be
                merged (unverified, or lost a creation race).
            AccountAlreadyLinked: The external identity was linked concurrently.
        """
        now = utcnow()
        provider_account_id = getattr(profile, "provider_account_id", None)

        if isinstance(profile, EmailProfile) or not provider_account_id:
            if not profile.email:
                raise InsufficientIdentifiers()
            return self._upsert_by_email(profile, now)

        account = self.accounts.get_by_provider_account(profile.provider, provider_account_id)
        if account is not None:
            return self._login_linked(account, profile, now)

        existing = self.users.get_by_email(profile.email) if profile.email else None
        if existing is not None:
            return self._merge(existing, profile, now)
        return self._create(profile, now)

    def _login_linked(self, account: OAuthAccount, profile: NormalizedProfile, now: datetime) -> Resolution:
        user = account.user
        with self._uniqueness(ConflictingEmail):
            self.users.apply_profile(
                user,
                email=profile.email,
                email_verified=profile.email_verified,
                display_name=profile.login,
                avatar_url=profile.avatar_url,
                login_at=now,
            )
        self.accounts.refresh_snapshot(account, profile.raw_profile)
        return Resolution(user=user)

    def _merge(self, user: User, profile: NormalizedProfile, now: datetime) -> Resolution:
        self._ensure_mergeable(user, profile)
        with self._uniqueness(AccountAlreadyLinked):
            self.accounts.link(user, profile.provider, profile.provider_account_id, profile.raw_profile)
        self.users.apply_profile(
            user,
            email=profile.email,
            email_verified=profile.email_verified,
            display_name=profile.login,
            avatar_url=profile.avatar_url,
            login_at=now,
        )
        return Resolution(user=user, linked_account=True)

    def _create(self, profile: NormalizedProfile, now: datetime) -> Resolution:
        user = self._new_user(profile, now)
        with self._uniqueness(AccountAlreadyLinked):
            self.accounts.link(user, profile.provider, profile.provider_account_id, profile.raw_profile)
        return Resolution(user=user, created_user=True, linked_account=True)

    def _upsert_by_email(self, profile: EmailProfile | NormalizedProfile, now: datetime) -> Resolution:
        user = self.users.get_by_email(profile.email)
        if user is None:
            return Resolution(user=self._new_user(profile, now), created_user=True)

        self._ensure_mergeable(user, profile)
        self.users.apply_profile(
            user,
            email=profile.email,
            email_verified=profile.email_verified,
            display_name=profile.login,
            avatar_url=profile.avatar_url,
            login_at=now,
        )
        return Resolution(user=user)

    def _new_user(self, profile: EmailProfile | NormalizedProfile, now: datetime) -> User:
        user = User(
            email=profile.email,
            email_verified=profile.email_verified if profile.email else False,
            display_name=profile.login,
            avatar_url=profile.avatar_url,
            role=ROLE_USER,
            last_login_at=now,
        )
        with self._uniqueness(ConflictingEmail):
            self.session.add(user)
            self.session.flush()
        return user

    def _ensure_mergeable(self, user: User, profile: EmailProfile | NormalizedProfile) -> None:
        """
        Refuse to attach a login to an existing user unless both sides have
        verified the shared email.
        """
        if not self.settings.merge_requires_verified_email:
            return
        if not (profile.email_verified and user.email_verified):
            raise ConflictingEmail()

    @contextmanager
    def _uniqueness(self, error: type[IdentityError]) -> Iterator[None]:
        """Translate a uniqueness violation into a deterministic identity error."""
        try:
            yield
        except IntegrityError as exc:
            self.session.rollback()
            raise error() from exc


__all__ = ["IdentityResolver", "Resolution"]
