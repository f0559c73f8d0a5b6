from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from authcore.errors import ExchangeFailed
from authcore.providers import GitHubProfile, GoogleProfile, get_provider
from backend.app.auth.dependencies import get_provider_factory
from backend.app.database import get_db
from backend.app.main import create_app

GITHUB_PROFILE = GitHubProfile(
    provider_account_id="42",
    login="octocat",
    email="octo@example.com",
    email_verified=True,
    avatar_url="https://avatars.example.com/42.png",
    raw_profile={"id": 42, "login": "octocat"},
)

GOOGLE_PROFILE = GoogleProfile(
    provider_account_id="g-1001",
    login="Octo Cat",
    email="octo@example.com",
    email_verified=True,
    avatar_url="https://lh3.example.com/photo.jpg",
    raw_profile={"id": "g-1001"},
)


class FakeProvider:
    """Provider adapter returning a fixed profile; code ``bad`` fails the exchange."""

    def __init__(self, name, profile):
        self.name = name
        self.profile = profile

    def authenticate(self, code):
        if code == "bad":
            raise ExchangeFailed(self.name)
        return self.profile


@pytest.fixture
def app_settings(make_settings):
    return make_settings()


@pytest.fixture
def fake_profiles() -> dict:
    """Profiles served per provider name; tests may replace entries."""
    return {"github": GITHUB_PROFILE, "google": GOOGLE_PROFILE}


@pytest.fixture
def make_client(test_db, fake_profiles) -> Callable[..., TestClient]:
    """
    Build a TestClient for an app created with the given settings.

    Use as a context manager so the app lifespan runs.
    """
    TestingSessionLocal, _ = test_db

    def override_get_db() -> Iterator[Session]:
        db = TestingSessionLocal()
        try:
            yield db
            db.commit()  # Auto-commit on success like production
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def provider_factory(name, settings):
        if name in fake_profiles:
            return FakeProvider(name, fake_profiles[name])
        return get_provider(name, settings)

    def _make(settings) -> TestClient:
        app = create_app(settings)
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_provider_factory] = lambda: provider_factory
        return TestClient(app)

    return _make


@pytest.fixture
def test_app_client(test_db, app_settings, make_client) -> Iterator[tuple[TestClient, sessionmaker]]:
    TestingSessionLocal, _ = test_db

    with make_client(app_settings) as client:
        yield client, TestingSessionLocal


@pytest.fixture
def login(test_app_client) -> Callable[..., dict]:
    """Log in through the OAuth callback and return the JSON body."""
    client, _ = test_app_client

    def _login(provider: str = "github", code: str = "good") -> dict:
        resp = client.post("/api/v1/auth/oauth/callback", json={"provider": provider, "code": code})
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _login


@pytest.fixture
def auth_headers(login) -> Callable[..., dict]:
    def _headers(provider: str = "github") -> dict:
        body = login(provider)
        return {"Authorization": f"Bearer {body['access_token']}"}

    return _headers
