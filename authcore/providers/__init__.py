"""
Provider exchange adapters.

Usage:
    from authcore.providers import get_provider

    profile = get_provider("github", settings).authenticate(code)
"""

import httpx

from authcore.config import Settings
from authcore.errors import UnsupportedProvider

from .base import OAuthProvider
from .github import GitHubProvider
from .google import GoogleProvider
from .profiles import (
    BaseProfile,
    EmailProfile,
    GitHubProfile,
    GoogleProfile,
    NormalizedProfile,
    normalized_profile_adapter,
)

PROVIDERS: dict[str, type[OAuthProvider]] = {
    GitHubProvider.name: GitHubProvider,
    GoogleProvider.name: GoogleProvider,
}


def get_provider(
    name: str, settings: Settings | None = None, client: httpx.Client | None = None
) -> OAuthProvider:
    """
    Return the adapter registered for a provider name.

    Raises:
        UnsupportedProvider: If no adapter is registered under that name.
    """
    provider_cls = PROVIDERS.get((name or "").lower())
    if provider_cls is None:
        raise UnsupportedProvider()
    return provider_cls(settings=settings, client=client)


__all__ = [
    "BaseProfile",
    "EmailProfile",
    "GitHubProfile",
    "GitHubProvider",
    "GoogleProfile",
    "GoogleProvider",
    "NormalizedProfile",
    "OAuthProvider",
    "PROVIDERS",
    "get_provider",
    "normalized_profile_adapter",
]
