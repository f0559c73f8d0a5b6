"""
Repository pattern implementations for data access.

Repositories provide a clean abstraction over database operations. They flush
but never commit; the caller's transaction makes each operation atomic.

Usage:
    from authcore.repositories import UserRepository
    from authcore.db import db

    with db.session() as session:
        user = UserRepository(session).get_by_email("octo@example.com")
"""

from .base import BaseRepository
from .session_repository import SessionRepository
from .user_repository import OAuthAccountRepository, UserRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "OAuthAccountRepository",
    "SessionRepository",
]
