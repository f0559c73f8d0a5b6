"""
Database session access for the HTTP layer.

Re-exports from authcore.db. Initialization happens explicitly in the
application lifespan in main.py, never at import time.
"""

from authcore.db import db, get_db

__all__ = ["db", "get_db"]
