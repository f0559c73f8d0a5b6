"""Tests for identity resolution: linked login, merge by email, creation."""

import pytest
from sqlalchemy.exc import OperationalError

from authcore.errors import (
    AccountAlreadyLinked,
    ConflictingEmail,
    InsufficientIdentifiers,
    PersistenceError,
)
from authcore.identity import IdentityResolver
from authcore.models import OAuthAccount, User
from authcore.providers import EmailProfile, GitHubProfile, GoogleProfile
from authcore.repositories import OAuthAccountRepository, UserRepository


@pytest.fixture
def resolver(test_session, settings):
    return IdentityResolver(test_session, settings)


def _counts(session) -> tuple[int, int]:
    return UserRepository(session).count(), OAuthAccountRepository(session).count()


def github_profile(**overrides) -> GitHubProfile:
    fields = {
        "provider_account_id": "42",
        "login": "octocat",
        "email": "octo@example.com",
        "email_verified": True,
        "avatar_url": "https://avatars.example.com/42.png",
        "raw_profile": {"id": 42, "login": "octocat"},
    }
    fields.update(overrides)
    return GitHubProfile(**fields)


def google_profile(**overrides) -> GoogleProfile:
    fields = {
        "provider_account_id": "g-1001",
        "login": "Octo Cat",
        "email": "octo@example.com",
        "email_verified": True,
        "avatar_url": "https://lh3.example.com/photo.jpg",
        "raw_profile": {"id": "g-1001"},
    }
    fields.update(overrides)
    return GoogleProfile(**fields)


class TestNewIdentity:
    def test_creates_one_user_and_one_account(self, resolver, test_session):
        resolution = resolver.resolve(github_profile())
        test_session.commit()

        assert resolution.created_user is True
        assert resolution.linked_account is True
        assert _counts(test_session) == (1, 1)

        user = resolution.user
        assert user.email == "octo@example.com"
        assert user.email_verified is True
        assert user.display_name == "octocat"
        assert user.role == "user"
        assert user.last_login_at is not None

        account = test_session.query(OAuthAccount).one()
        assert account.user_id == user.id
        assert account.provider == "github"
        assert account.provider_account_id == "42"
        assert account.provider_type == "oauth"
        assert account.raw_profile == {"id": 42, "login": "octocat"}

    def test_profile_without_email_creates_user(self, resolver, test_session):
        resolution = resolver.resolve(github_profile(email=None, email_verified=False))

        assert resolution.created_user is True
        assert resolution.user.email is None
        assert resolution.user.email_verified is False
        assert _counts(test_session) == (1, 1)

    def test_email_verified_taken_from_profile(self, resolver):
        resolution = resolver.resolve(github_profile(email="new@example.com", email_verified=False))

        assert resolution.user.email_verified is False


class TestRepeatLogin:
    def test_same_identity_reuses_user(self, resolver, test_session):
        first = resolver.resolve(github_profile())
        test_session.commit()

        second = resolver.resolve(github_profile(login="octocat-renamed"))
        test_session.commit()

        assert second.user.id == first.user.id
        assert second.created_user is False
        assert second.linked_account is False
        assert second.user.display_name == "octocat-renamed"
        assert _counts(test_session) == (1, 1)

    def test_missing_fields_never_clear_stored_values(self, resolver, test_session):
        resolver.resolve(github_profile())
        test_session.commit()

        resolution = resolver.resolve(
            github_profile(login=None, email=None, email_verified=False, avatar_url=None)
        )

        user = resolution.user
        assert user.email == "octo@example.com"
        assert user.email_verified is True
        assert user.display_name == "octocat"
        assert user.avatar_url == "https://avatars.example.com/42.png"

    def test_bumps_last_login_and_snapshot(self, resolver, test_session):
        first = resolver.resolve(github_profile())
        test_session.commit()
        first_login = first.user.last_login_at

        resolver.resolve(github_profile(raw_profile={"id": 42, "login": "octocat", "bio": "hi"}))
        test_session.commit()

        user = test_session.get(User, first.user.id)
        assert user.last_login_at >= first_login
        assert user.oauth_accounts[0].raw_profile["bio"] == "hi"

    def test_changed_verified_email_is_taken(self, resolver, test_session):
        resolver.resolve(github_profile())
        test_session.commit()

        resolution = resolver.resolve(github_profile(email="moved@example.com"))

        assert resolution.user.email == "moved@example.com"
        assert resolution.user.email_verified is True

    def test_unverified_email_never_replaces_verified_one(self, resolver, test_session):
        resolver.resolve(github_profile())
        test_session.commit()

        resolution = resolver.resolve(github_profile(email="moved@example.com", email_verified=False))

        assert resolution.user.email == "octo@example.com"
        assert resolution.user.email_verified is True

    def test_unverified_email_replaces_unverified_one(self, resolver, test_session):
        resolver.resolve(github_profile(email_verified=False))
        test_session.commit()

        resolution = resolver.resolve(github_profile(email="moved@example.com", email_verified=False))

        assert resolution.user.email == "moved@example.com"
        assert resolution.user.email_verified is False

    def test_email_taken_by_other_user_is_conflict(self, resolver, test_session, make_user):
        make_user(email="taken@example.com", accounts=[("google", "g-7")])
        resolver.resolve(github_profile())
        test_session.commit()

        with pytest.raises(ConflictingEmail):
            resolver.resolve(github_profile(email="taken@example.com"))

        assert test_session.query(User).filter(User.email == "octo@example.com").count() == 1


class TestMergeByEmail:
    def test_github_then_google_share_one_user(self, resolver, test_session):
        github = resolver.resolve(github_profile())
        test_session.commit()

        google = resolver.resolve(google_profile())
        test_session.commit()

        assert google.user.id == github.user.id
        assert google.created_user is False
        assert google.linked_account is True
        assert _counts(test_session) == (1, 2)
        providers = sorted(a.provider for a in test_session.get(User, github.user.id).oauth_accounts)
        assert providers == ["github", "google"]

    def test_merge_refreshes_profile(self, resolver, test_session, make_user):
        user = make_user(email="octo@example.com", display_name="old", accounts=[("google", "g-1")])

        resolution = resolver.resolve(github_profile())

        assert resolution.user.id == user.id
        assert resolution.user.display_name == "octocat"
        assert resolution.user.avatar_url == "https://avatars.example.com/42.png"
        assert resolution.user.last_login_at is not None

    def test_unverified_email_does_not_merge(self, resolver, test_session, make_user):
        make_user(email="octo@example.com", accounts=[("google", "g-1")])

        with pytest.raises(ConflictingEmail):
            resolver.resolve(github_profile(email_verified=False))

        assert _counts(test_session) == (1, 1)

    def test_verified_login_does_not_merge_into_unverified_user(self, resolver, test_session):
        squatter = resolver.resolve(
            github_profile(provider_account_id="666", email="victim@example.com", email_verified=False)
        )
        test_session.commit()

        with pytest.raises(ConflictingEmail):
            resolver.resolve(google_profile(provider_account_id="g-v", email="victim@example.com"))

        assert squatter.created_user is True
        assert _counts(test_session) == (1, 1)
        assert test_session.query(OAuthAccount).one().provider == "github"

    def test_email_only_does_not_refresh_unverified_user(self, resolver, test_session, make_user):
        make_user(email="solo@example.com", display_name="before", email_verified=False)

        with pytest.raises(ConflictingEmail):
            resolver.resolve(EmailProfile(email="solo@example.com", email_verified=True, login="after"))

        assert test_session.query(User).one().display_name == "before"

    def test_unverified_merge_allowed_when_disabled(self, test_session, make_user, make_settings):
        make_user(email="octo@example.com", accounts=[("google", "g-1")])
        resolver = IdentityResolver(test_session, make_settings(merge_requires_verified_email=False))

        resolution = resolver.resolve(github_profile(email_verified=False))

        assert resolution.linked_account is True
        assert _counts(test_session) == (1, 2)


class TestEmailOnly:
    def test_creates_user_without_account(self, resolver, test_session):
        resolution = resolver.resolve(EmailProfile(email="solo@example.com", login="solo"))

        assert resolution.created_user is True
        assert resolution.linked_account is False
        assert _counts(test_session) == (1, 0)

    def test_refreshes_existing_verified(self, resolver, test_session, make_user):
        user = make_user(email="solo@example.com", display_name="before")

        resolution = resolver.resolve(
            EmailProfile(email="solo@example.com", email_verified=True, login="after")
        )

        assert resolution.user.id == user.id
        assert resolution.created_user is False
        assert resolution.user.display_name == "after"
        assert _counts(test_session) == (1, 0)

    def test_unverified_does_not_touch_existing(self, resolver, test_session, make_user):
        make_user(email="solo@example.com", display_name="before")

        with pytest.raises(ConflictingEmail):
            resolver.resolve(EmailProfile(email="solo@example.com", login="intruder"))

        assert test_session.query(User).one().display_name == "before"

    def test_no_identity_and_no_email(self, resolver, test_session):
        with pytest.raises(InsufficientIdentifiers):
            resolver.resolve(EmailProfile(login="nobody"))

        assert _counts(test_session) == (0, 0)

    def test_blank_email_is_treated_as_missing(self, resolver, test_session):
        with pytest.raises(InsufficientIdentifiers):
            resolver.resolve(EmailProfile(email="   "))

        assert _counts(test_session) == (0, 0)


class TestConcurrency:
    def test_duplicate_link_race_is_account_already_linked(
        self, resolver, test_session, make_user, monkeypatch
    ):
        make_user(email="first@example.com", accounts=[("github", "42")])
        # Another request linked the identity after our lookup
        monkeypatch.setattr(resolver.accounts, "get_by_provider_account", lambda provider, pid: None)

        with pytest.raises(AccountAlreadyLinked):
            resolver.resolve(github_profile(email="second@example.com"))

        assert _counts(test_session) == (1, 1)

    def test_duplicate_email_race_is_conflicting_email(
        self, resolver, test_session, make_user, monkeypatch
    ):
        make_user(email="octo@example.com", accounts=[("google", "g-1")])
        # Another request created the user after our lookup
        monkeypatch.setattr(resolver.users, "get_by_email", lambda email: None)

        with pytest.raises(ConflictingEmail):
            resolver.resolve(github_profile())

        assert _counts(test_session) == (1, 1)

    def test_storage_failure_is_opaque(self, resolver, monkeypatch):
        def broken(provider, pid):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(resolver.accounts, "get_by_provider_account", broken)

        with pytest.raises(PersistenceError) as exc_info:
            resolver.resolve(github_profile())

        assert "locked" not in exc_info.value.detail
        assert exc_info.value.status_code == 500
