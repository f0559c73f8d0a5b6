"""
SQLAlchemy models for the auth service.

Usage:
    from authcore.models import User, OAuthAccount, RefreshSession
"""

from .base import Base, new_id, utcnow
from .session import RefreshSession
from .user import OAuthAccount, User

__all__ = [
    # Base
    "Base",
    "new_id",
    "utcnow",
    # User
    "User",
    "OAuthAccount",
    # Session
    "RefreshSession",
]
