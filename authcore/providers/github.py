"""
GitHub OAuth provider.
"""

from typing import Any

import httpx

from authcore.config import ProviderCredentials
from authcore.constants import Provider

from .base import OAuthProvider, logger

GITHUB_ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_URL = "https://api.github.com"


class GitHubProvider(OAuthProvider):
    """Exchange GitHub authorization codes for normalized profiles."""

    name = Provider.GITHUB.value
    token_url = GITHUB_ACCESS_TOKEN_URL
    profile_url = f"{GITHUB_API_URL}/user"
    emails_url = f"{GITHUB_API_URL}/user/emails"

    def auth_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }

    def _request_token(
        self, client: httpx.Client, credentials: ProviderCredentials, code: str
    ) -> httpx.Response:
        payload = {
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "code": code,
        }
        if credentials.redirect_uri:
            payload["redirect_uri"] = credentials.redirect_uri
        return client.post(self.token_url, json=payload, headers={"Accept": "application/json"})

    def normalize(self, client: httpx.Client, access_token: str, payload: dict[str, Any]) -> dict[str, Any]:
        email = payload.get("email")
        email_verified = bool(email)
        if not email:
            email, email_verified = self._primary_email(client, access_token)

        return {
            "provider": self.name,
            "provider_account_id": str(payload["id"]) if payload.get("id") is not None else "",
            "login": payload.get("login"),
            "email": email,
            "email_verified": email_verified,
            "avatar_url": payload.get("avatar_url"),
            "raw_profile": payload,
        }

    def _primary_email(self, client: httpx.Client, access_token: str) -> tuple[str | None, bool]:
        """
        Pick the primary entry (else the first) of the account's email list.

        A failed lookup yields no email rather than failing the login.
        """
        try:
            response = client.get(self.emails_url, headers=self.auth_headers(access_token))
            if not response.is_success:
                logger.info("github_emails_unavailable", status_code=response.status_code)
                return None, False
            entries = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.info("github_emails_unavailable", error_type=type(exc).__name__)
            return None, False

        entries = [entry for entry in entries if isinstance(entry, dict)] if isinstance(entries, list) else []
        if not entries:
            return None, False

        chosen = next((entry for entry in entries if entry.get("primary")), entries[0])
        return chosen.get("email"), bool(chosen.get("verified"))
