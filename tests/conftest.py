"""
Pytest fixtures for the auth core tests.

Each test gets a fresh in-memory SQLite database built from the ORM models.
"""

from collections.abc import Callable

import pytest
from sqlalchemy.orm import sessionmaker

from authcore.config import Settings
from authcore.db import Base, build_engine
from authcore.models import OAuthAccount, User

TEST_JWT_SECRET = "test-signing-key-0123456789-abcdefghijklmnop"


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """
    Build isolated settings; keyword overrides use field names.

    Usage:
        settings = make_settings(merge_requires_verified_email=False)
    """

    def _make(**overrides) -> Settings:
        base = Settings(
            _env_file=None,
            ENV="development",
            DATABASE_URL="sqlite://",
            JWT_SECRET_KEY=TEST_JWT_SECRET,
            GITHUB_CLIENT_ID="gh-client",
            GITHUB_CLIENT_SECRET="gh-secret",
            GITHUB_REDIRECT_URI="http://localhost:3000/auth/github/callback",
            GOOGLE_CLIENT_ID="google-client",
            GOOGLE_CLIENT_SECRET="google-secret",
            GOOGLE_REDIRECT_URI="http://localhost:3000/auth/google/callback",
        )
        return base.model_copy(update=overrides) if overrides else base

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh in-memory database for each test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )

    yield TestingSessionLocal, engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def test_session(test_db):
    """Get a test session from the test database."""
    TestingSessionLocal, _ = test_db
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture
def make_user(test_session) -> Callable[..., User]:
    """Persist a user, optionally with linked accounts given as (provider, id) pairs."""

    def _make(email: str | None = "octo@example.com", accounts=(), **fields) -> User:
        fields.setdefault("email_verified", email is not None)
        fields.setdefault("display_name", "octo")
        user = User(email=email, **fields)
        test_session.add(user)
        test_session.flush()
        for provider, provider_account_id in accounts:
            test_session.add(
                OAuthAccount(user=user, provider=provider, provider_account_id=provider_account_id)
            )
        test_session.commit()
        return user

    return _make
