"""
Constants shared across the auth core.
"""

import enum


class Provider(str, enum.Enum):
    """External identity providers a user can sign in with."""

    GITHUB = "github"
    GOOGLE = "google"


# Provider type tag stored on linked accounts
PROVIDER_TYPE_OAUTH = "oauth"

# Roles
ROLE_USER = "user"

# Refresh secrets: bytes of entropy fed to secrets.token_urlsafe
REFRESH_SECRET_BYTES = 48
