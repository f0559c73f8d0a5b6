"""
Base model class for SQLAlchemy ORM.

Re-exports the Base class from the database module for convenience.
"""

import uuid
from datetime import datetime, timezone

from authcore.db import Base


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Opaque primary key for users, accounts and sessions."""
    return str(uuid.uuid4())


__all__ = ["Base", "new_id", "utcnow"]
