"""
Provider exchange adapter base class.

An adapter turns an authorization code into a NormalizedProfile:
1. exchange the code at the provider's token endpoint
2. fetch the profile with the returned access token
3. validate it into the provider's profile type

No retries: any failure surfaces immediately to the caller.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from authcore.config import ProviderCredentials, Settings, get_settings
from authcore.errors import ExchangeFailed, ProfileFetchFailed
from authcore.logging import LogContext, get_logger, log_boundary

from .profiles import NormalizedProfile, normalized_profile_adapter

logger = get_logger("providers")


class OAuthProvider(ABC):
    """Base class for one external identity provider."""

    name: str
    token_url: str
    profile_url: str

    def __init__(self, settings: Settings | None = None, client: httpx.Client | None = None):
        self.settings = settings or get_settings()
        self._client = client

    @contextmanager
    def _http(self) -> Iterator[httpx.Client]:
        """Yield the injected client, or a short-lived one closed afterwards."""
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(timeout=self.settings.provider_http_timeout) as client:
            yield client

    @log_boundary("provider_exchange", logger=logger)
    def authenticate(self, code: str) -> NormalizedProfile:
        """
        Exchange an authorization code for a normalized profile.

        Raises:
            ProviderNotConfigured: Client id/secret are not set.
            ExchangeFailed: The provider returned no access token.
            ProfileFetchFailed: The profile request failed or was malformed.
        """
        credentials = self.settings.provider_credentials(self.name)
        with LogContext(provider=self.name), self._http() as client:
            access_token = self.exchange_code(client, credentials, code)
            return self.fetch_profile(client, access_token)

    def exchange_code(self, client: httpx.Client, credentials: ProviderCredentials, code: str) -> str:
        """Exchange an authorization code for a provider access token."""
        try:
            response = self._request_token(client, credentials, code)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ExchangeFailed(self.name) from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.warning(
                "provider_token_missing",
                status_code=response.status_code,
                error=payload.get("error") if isinstance(payload, dict) else None,
            )
            raise ExchangeFailed(self.name)
        return access_token

    def fetch_profile(self, client: httpx.Client, access_token: str) -> NormalizedProfile:
        """Fetch and normalize the provider profile."""
        try:
            response = client.get(self.profile_url, headers=self.auth_headers(access_token))
        except httpx.HTTPError as exc:
            raise ProfileFetchFailed(self.name) from exc

        if not response.is_success:
            logger.warning("provider_profile_rejected", status_code=response.status_code)
            raise ProfileFetchFailed(self.name)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProfileFetchFailed(self.name) from exc
        if not isinstance(payload, dict):
            raise ProfileFetchFailed(self.name)

        try:
            return normalized_profile_adapter.validate_python(
                self.normalize(client, access_token, payload)
            )
        except ValidationError as exc:
            logger.warning("provider_profile_invalid", errors=exc.error_count())
            raise ProfileFetchFailed(self.name) from exc

    def auth_headers(self, access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    @abstractmethod
    def _request_token(
        self, client: httpx.Client, credentials: ProviderCredentials, code: str
    ) -> httpx.Response:
        """POST the code to the provider's token endpoint."""

    @abstractmethod
    def normalize(self, client: httpx.Client, access_token: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Map a raw profile payload to NormalizedProfile fields."""
