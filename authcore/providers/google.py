"""
Google OAuth provider.
"""

from typing import Any

import httpx

from authcore.config import ProviderCredentials
from authcore.constants import Provider

from .base import OAuthProvider

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class GoogleProvider(OAuthProvider):
    """Exchange Google authorization codes for normalized profiles."""

    name = Provider.GOOGLE.value
    token_url = GOOGLE_TOKEN_URL
    profile_url = GOOGLE_USERINFO_URL

    def _request_token(
        self, client: httpx.Client, credentials: ProviderCredentials, code: str
    ) -> httpx.Response:
        payload = {
            "code": code,
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "redirect_uri": credentials.redirect_uri or "",
            "grant_type": "authorization_code",
        }
        return client.post(self.token_url, data=payload)

    def normalize(self, client: httpx.Client, access_token: str, payload: dict[str, Any]) -> dict[str, Any]:
        # Google only releases addresses it has verified
        return {
            "provider": self.name,
            "provider_account_id": str(payload["id"]) if payload.get("id") is not None else "",
            "login": payload.get("name") or payload.get("email"),
            "email": payload.get("email"),
            "email_verified": bool(payload.get("email")),
            "avatar_url": payload.get("picture"),
            "raw_profile": payload,
        }
