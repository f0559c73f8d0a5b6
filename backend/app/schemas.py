"""
Pydantic schemas for request and response validation.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from authcore.models import User


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    email_verified: bool = False
    role: str
    provider: str | None = Field(
        default=None,
        validation_alias=AliasChoices("primary_provider", "provider"),
    )
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user)


class AuthResponse(TokenResponse):
    """Access token plus the signed-in user; the refresh secret travels as a cookie."""

    user: UserResponse


class OAuthCallbackRequest(BaseModel):
    provider: str = Field(min_length=1, max_length=32)
    code: str = Field(min_length=1, max_length=2048)


class RefreshRequest(BaseModel):
    refresh_token: str | None = Field(default=None, max_length=512)


class LogoutResponse(BaseModel):
    status: str = "logged_out"


class UpdateUserRequest(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=1024)


class UpsertUserRequest(BaseModel):
    """
    Identity to find or create.

    Either ``provider`` with ``provider_account_id``, or ``email`` alone.
    Emails submitted here are never treated as verified.
    """

    email: EmailStr | None = None
    provider: str | None = Field(default=None, max_length=32)
    provider_account_id: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=1024)


class SessionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime | None = None
    expires_at: datetime
    ip: str | None = None
    user_agent: str | None = None


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]
    total: int
