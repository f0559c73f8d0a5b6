"""
Panopticon Auth Core Library.

Identity and session core: provider code exchange, identity resolution,
refresh sessions, access tokens and the request guard.

Usage:
    # Database
    from authcore.db import db, get_db
    from authcore.models import User, OAuthAccount, RefreshSession

    # Config
    from authcore.config import get_settings, Settings

    # Logging
    from authcore.logging import get_logger, configure_logging
"""

__version__ = "1.0.0"

# Import submodules directly:
#   from authcore.identity import IdentityResolver
#   from authcore.sessions import SessionManager
