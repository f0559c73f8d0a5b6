"""
Application configuration using Pydantic settings.

Usage:
    from authcore.config import get_settings
    settings = get_settings()

The settings object is frozen and built once per process. Components that need
configuration (provider adapters, token issuer/verifier, session manager)
receive it by reference instead of reading the environment themselves.
"""

import os
import warnings
from functools import lru_cache
from typing import List, NamedTuple, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ProviderNotConfigured

FORBIDDEN_SECRETS = (
    "CHANGE_ME",
    "changeme",
    "secret",
    "your-secret-key",
    "jwt-secret",
    "supersecret",
    "development",
    "test",
)


def _current_env() -> str:
    return os.getenv("ENV", "development").lower()


class ProviderCredentials(NamedTuple):
    """Server-held OAuth client credentials for one provider."""

    client_id: str
    client_secret: str
    redirect_uri: Optional[str]


class Settings(BaseSettings):
    """
    Unified application settings loaded from environment variables and .env file.

    Required for production:
        - JWT_SECRET_KEY (min 32 chars)
        - GITHUB_CLIENT_ID / GITHUB_CLIENT_SECRET and/or
          GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # App settings
    app_name: str = "panopticon-auth"
    api_prefix: str = "/api"
    debug: bool = Field(default=False, validation_alias="DEBUG")
    env: str = Field(default="development", validation_alias="ENV")

    # Database
    database_url: str = Field(default="sqlite:///panopticon_auth.db", validation_alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, validation_alias="DB_MAX_OVERFLOW")
    db_pool_pre_ping: bool = Field(default=True, validation_alias="DB_POOL_PRE_PING")

    # GitHub OAuth
    github_client_id: str = Field(default="", validation_alias="GITHUB_CLIENT_ID")
    github_client_secret: str = Field(default="", validation_alias="GITHUB_CLIENT_SECRET")
    github_redirect_uri: Optional[str] = Field(default=None, validation_alias="GITHUB_REDIRECT_URI")

    # Google OAuth
    google_client_id: str = Field(default="", validation_alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", validation_alias="GOOGLE_CLIENT_SECRET")
    google_redirect_uri: Optional[str] = Field(default=None, validation_alias="GOOGLE_REDIRECT_URI")

    provider_http_timeout: float = Field(default=10.0, validation_alias="PROVIDER_HTTP_TIMEOUT")

    # JWT / Authentication
    jwt_secret_key: str = Field(default="", validation_alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=15, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Refresh sessions
    refresh_session_ttl_days: int = Field(default=30, validation_alias="REFRESH_SESSION_TTL_DAYS")
    refresh_cookie_name: str = Field(default="refreshToken", validation_alias="REFRESH_COOKIE_NAME")

    # Identity merging
    merge_requires_verified_email: bool = Field(
        default=True, validation_alias="MERGE_REQUIRES_VERIFIED_EMAIL"
    )

    # CORS
    cors_allowed_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOWED_ORIGINS")

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str, info: ValidationInfo) -> str:
        """Validate JWT secret - warns in dev, errors in production."""
        env = info.data.get("env") or _current_env()
        is_production = env.lower() in ("production", "prod")

        is_forbidden = v.lower() in [fv.lower() for fv in FORBIDDEN_SECRETS]
        is_too_short = len(v) < 32

        if is_production:
            if not v:
                raise ValueError("JWT_SECRET_KEY must be set in production")
            if is_forbidden:
                raise ValueError(
                    f"JWT_SECRET_KEY cannot be a default value ('{v}') in production. "
                    "Generate a secure key with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
                )
            if is_too_short:
                raise ValueError(
                    f"JWT_SECRET_KEY must be at least 32 characters in production (got {len(v)})"
                )
        elif v and is_forbidden:
            warnings.warn(
                f"JWT_SECRET_KEY is set to a default value ('{v}'). "
                "This is insecure - set a proper key for production.",
                UserWarning,
                stacklevel=2,
            )
        elif v and is_too_short:
            warnings.warn(
                f"JWT_SECRET_KEY should be at least 32 characters (got {len(v)})",
                UserWarning,
                stacklevel=2,
            )

        return v

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("production", "prod")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    def provider_credentials(self, provider: str) -> ProviderCredentials:
        """
        Return the OAuth client credentials for a provider.

        Raises:
            ProviderNotConfigured: If the client id or secret is missing.
        """
        client_id = getattr(self, f"{provider}_client_id", "")
        client_secret = getattr(self, f"{provider}_client_secret", "")
        if not client_id or not client_secret:
            raise ProviderNotConfigured(provider)
        redirect_uri = getattr(self, f"{provider}_redirect_uri", None)
        return ProviderCredentials(client_id, client_secret, redirect_uri)

    def validate_production_config(self) -> tuple[List[str], List[str]]:
        """
        Validate configuration for production deployment.

        Returns:
            Tuple of (errors, warnings) - errors are fatal, warnings are advisory
        """
        errors = []
        warnings_ = []

        if not self.jwt_secret_key:
            errors.append("JWT_SECRET_KEY must be set")

        github_ready = bool(self.github_client_id and self.github_client_secret)
        google_ready = bool(self.google_client_id and self.google_client_secret)
        if not (github_ready or google_ready):
            warnings_.append("No OAuth provider is configured - logins will be rejected")
        if github_ready and not self.github_redirect_uri:
            warnings_.append("GITHUB_REDIRECT_URI is not set")
        if google_ready and not self.google_redirect_uri:
            warnings_.append("GOOGLE_REDIRECT_URI is not set")

        if not self.merge_requires_verified_email:
            warnings_.append(
                "MERGE_REQUIRES_VERIFIED_EMAIL is disabled - unverified provider emails "
                "can attach a login to an existing account"
            )

        return errors, warnings_


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


__all__ = ["ProviderCredentials", "Settings", "get_settings"]
