"""
Normalized provider profiles.

Adapters validate raw provider payloads into one of these closed types before
anything reaches the identity resolver.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class BaseProfile(BaseModel):
    """Fields every profile carries, whatever its source."""

    model_config = ConfigDict(frozen=True)

    login: str | None = None
    email: str | None = None
    email_verified: bool = False
    avatar_url: str | None = None
    raw_profile: dict[str, Any] = Field(default_factory=dict)

    @field_validator("login", "email", "avatar_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class GitHubProfile(BaseProfile):
    provider: Literal["github"] = "github"
    provider_account_id: str = Field(min_length=1)


class GoogleProfile(BaseProfile):
    provider: Literal["google"] = "google"
    provider_account_id: str = Field(min_length=1)


class EmailProfile(BaseProfile):
    """Identity claim with no external account, resolved by email alone."""

    provider: Literal["email"] = "email"


NormalizedProfile = Annotated[Union[GitHubProfile, GoogleProfile], Field(discriminator="provider")]

normalized_profile_adapter: TypeAdapter[NormalizedProfile] = TypeAdapter(NormalizedProfile)


__all__ = [
    "BaseProfile",
    "EmailProfile",
    "GitHubProfile",
    "GoogleProfile",
    "NormalizedProfile",
    "normalized_profile_adapter",
]
