"""Tests for access token issuing and verification."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from authcore.errors import ConfigurationError, InvalidAccessToken
from authcore.tokens import CredentialVerifier, TokenIssuer


@pytest.fixture
def issuer(settings):
    return TokenIssuer(settings)


@pytest.fixture
def verifier(settings):
    return CredentialVerifier(settings)


class TestRoundTrip:
    def test_issue_then_verify_returns_same_claims(self, issuer, verifier):
        token = issuer.issue("user-1", "octo@example.com")

        claims = verifier.verify(token)

        assert claims.subject == "user-1"
        assert claims.email == "octo@example.com"
        assert claims.token_id

    def test_email_may_be_absent(self, issuer, verifier):
        claims = verifier.verify(issuer.issue("user-2"))

        assert claims.subject == "user-2"
        assert claims.email is None

    def test_lifetime_follows_settings(self, issuer, verifier, settings):
        claims = verifier.verify(issuer.issue("user-1"))

        lifetime = claims.expires_at - claims.issued_at
        assert lifetime == timedelta(minutes=settings.access_token_expire_minutes)

    def test_each_token_has_unique_jti(self, issuer, verifier):
        first = verifier.verify(issuer.issue("user-1"))
        second = verifier.verify(issuer.issue("user-1"))

        assert first.token_id != second.token_id


class TestRejection:
    def test_altered_signature_rejected(self, issuer, verifier):
        token = issuer.issue("user-1", "octo@example.com")
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])

        with pytest.raises(InvalidAccessToken):
            verifier.verify(tampered)

    def test_token_signed_with_other_secret_rejected(self, verifier, settings):
        foreign = jwt.encode(
            {"sub": "user-1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "another-secret-that-is-long-enough-000000",
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(InvalidAccessToken):
            verifier.verify(foreign)

    def test_expired_token_rejected(self, issuer, verifier, settings):
        now = datetime.now(timezone.utc)
        expired = jwt.encode(
            {"sub": "user-1", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(InvalidAccessToken):
            verifier.verify(expired)

    def test_malformed_token_rejected(self, verifier):
        with pytest.raises(InvalidAccessToken):
            verifier.verify("not-a-jwt")

    def test_missing_subject_rejected(self, verifier, settings):
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(InvalidAccessToken):
            verifier.verify(token)

    def test_failures_are_indistinguishable(self, issuer, verifier, settings):
        now = datetime.now(timezone.utc)
        expired = jwt.encode(
            {"sub": "user-1", "exp": now - timedelta(minutes=1)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        token = issuer.issue("user-1")
        tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")

        messages = set()
        for bad in (expired, tampered, "garbage"):
            with pytest.raises(InvalidAccessToken) as exc_info:
                verifier.verify(bad)
            messages.add((exc_info.value.detail, exc_info.value.code))

        assert len(messages) == 1


class TestConfiguration:
    def test_missing_secret_is_configuration_error(self, make_settings):
        settings = make_settings(jwt_secret_key="")

        with pytest.raises(ConfigurationError):
            TokenIssuer(settings)
        with pytest.raises(ConfigurationError):
            CredentialVerifier(settings)


def test_zero_minute_override_is_not_replaced_by_default(issuer):
    token = issuer.issue("user-1", expires_minutes=0)

    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] == claims["iat"]
