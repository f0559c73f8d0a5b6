"""
User router: profile reads and edits for the authenticated caller, and the
generic identity upsert.
"""

from fastapi import APIRouter, Depends, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from authcore.errors import UnsupportedProvider, UserNotFound
from authcore.guard import require_owner
from authcore.identity import IdentityResolver
from authcore.logging import get_logger
from authcore.models import User
from authcore.providers import EmailProfile, normalized_profile_adapter
from authcore.repositories import UserRepository
from authcore.tokens import AccessClaims

from ..auth.dependencies import get_current_claims, get_identity_resolver
from ..database import get_db
from ..schemas import UpdateUserRequest, UpsertUserRequest, UserResponse

logger = get_logger("users")

router = APIRouter(prefix="/users", tags=["users"])


def _load_user(db: Session, user_id: str) -> User:
    user = UserRepository(db).get_with_accounts(user_id)
    if user is None:
        raise UserNotFound()
    return user


@router.get("/me", response_model=UserResponse)
def get_me(
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    return UserResponse.from_user(_load_user(db, claims.subject))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    require_owner(claims, user_id)
    return UserResponse.from_user(_load_user(db, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: UpdateUserRequest,
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    """Edit display name and avatar. Only the owner may edit."""
    require_owner(claims, user_id)
    user = _load_user(db, user_id)
    UserRepository(db).update_profile(
        user,
        display_name=payload.display_name,
        avatar_url=payload.avatar_url,
    )
    logger.info("user_updated", user_id=user.id)
    return UserResponse.from_user(user)


@router.post("", response_model=UserResponse)
def upsert_user(
    payload: UpsertUserRequest,
    response: Response,
    claims: AccessClaims = Depends(get_current_claims),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    """
    Find or create a user from an identity.

    Returns 201 when a user was created, 200 when an existing one matched.
    An existing user may only be upserted by that user; otherwise the
    request fails and the transaction rolls back.
    """
    fields = {
        "login": payload.display_name,
        "email": payload.email,
        "email_verified": False,
        "avatar_url": payload.avatar_url,
    }
    if payload.provider and payload.provider_account_id:
        try:
            profile = normalized_profile_adapter.validate_python(
                {
                    **fields,
                    "provider": payload.provider.lower(),
                    "provider_account_id": payload.provider_account_id,
                }
            )
        except ValidationError:
            raise UnsupportedProvider() from None
    else:
        profile = EmailProfile(**fields)

    resolution = resolver.resolve(profile)
    if resolution.created_user:
        response.status_code = status.HTTP_201_CREATED
    else:
        require_owner(claims, resolution.user.id)
    logger.info(
        "user_upserted",
        user_id=resolution.user.id,
        created_user=resolution.created_user,
        requested_by=claims.subject,
    )
    return UserResponse.from_user(resolution.user)
