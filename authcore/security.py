"""
Startup security validation.

Checks the settings that protect issued credentials before the application
accepts traffic. Errors are fatal; warnings are logged and tolerated.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from .config import FORBIDDEN_SECRETS, Settings
from .logging import get_logger

logger = get_logger("security.validation")

WEAK_DATABASE_PASSWORDS = ("password", "postgres", "admin", "root", "")


class SecurityConfigError(Exception):
    """Raised when security configuration is invalid."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        message = "Security configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
        super().__init__(message)


@dataclass
class ValidationResult:
    """Result of security validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_jwt_secret(secret: str) -> str | None:
    """Return an error message for an unusable signing secret, else None."""
    if not secret:
        return "JWT_SECRET_KEY is not set"
    if secret.lower() in [v.lower() for v in FORBIDDEN_SECRETS]:
        return f"JWT_SECRET_KEY cannot be a default value like '{secret}'"
    if len(secret) < 32:
        return f"JWT_SECRET_KEY must be at least 32 characters (got {len(secret)})"
    if not re.search(r"[A-Za-z]", secret) and not re.search(r"\d", secret):
        return "JWT_SECRET_KEY should contain a mix of letters and numbers"
    return None


def validate_cors_origins(origins: list[str], production: bool) -> tuple[str | None, str | None]:
    """
    Validate CORS allowed origins.

    Credentials (the refresh cookie) are sent cross-origin, so a wildcard is
    an error rather than a warning.

    Returns:
        Tuple of (error_message, warning_message)
    """
    if not origins:
        return None, "CORS_ALLOWED_ORIGINS is empty - browser clients cannot call the API"
    if "*" in origins:
        return "CORS_ALLOWED_ORIGINS cannot be '*' when cookies are used", None

    localhost = ("localhost", "127.0.0.1", "0.0.0.0")
    if production and any(host in origin for origin in origins for host in localhost):
        return None, "CORS includes localhost origins - verify this is intentional in production"
    return None, None


def validate_database_url(url: str, production: bool) -> tuple[str | None, str | None]:
    """
    Validate database URL security.

    Returns:
        Tuple of (error_message, warning_message)
    """
    if not url:
        return "DATABASE_URL is not set", None
    if url.startswith("sqlite"):
        if production:
            return None, "Using SQLite in production - consider PostgreSQL"
        return None, None

    password = urlsplit(url).password
    if password is not None and password in WEAK_DATABASE_PASSWORDS:
        return None, "Database password appears to be weak or default"
    return None, None


def validate_security_config(settings: Settings, strict: bool = False) -> ValidationResult:
    """
    Validate all security configuration.

    Args:
        settings: Application settings
        strict: If True, treat warnings as errors

    Raises:
        SecurityConfigError: On any error, or any warning when strict
    """
    errors: list[str] = []
    warnings: list[str] = []

    error = validate_jwt_secret(settings.jwt_secret_key)
    if error:
        errors.append(error)

    error, warning = validate_cors_origins(settings.cors_origins_list, settings.is_production)
    if error:
        errors.append(error)
    if warning:
        warnings.append(warning)

    error, warning = validate_database_url(settings.database_url, settings.is_production)
    if error:
        errors.append(error)
    if warning:
        warnings.append(warning)

    config_errors, config_warnings = settings.validate_production_config()
    errors.extend(e for e in config_errors if e not in errors)
    warnings.extend(config_warnings)

    for error in errors:
        logger.error("config_validation_error", error=error)
    for warning in warnings:
        logger.warning("config_validation_warning", warning=warning)

    if strict and (errors or warnings):
        raise SecurityConfigError(errors + warnings)
    if errors:
        raise SecurityConfigError(errors)

    return ValidationResult(valid=True, errors=[], warnings=warnings)


__all__ = [
    "SecurityConfigError",
    "ValidationResult",
    "validate_cors_origins",
    "validate_database_url",
    "validate_jwt_secret",
    "validate_security_config",
]
