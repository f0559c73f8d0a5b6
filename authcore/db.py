"""
Database access for the auth core.

One process-wide DatabaseManager owns the engine and the session factory.
Identity resolution and session rotation never open their own transactions:
they run inside the session they are handed, and the unique constraints on
users.email, (provider, provider_account_id) and sessions.token_hash decide
which of two concurrent writers wins.

Usage:
    from authcore.db import db

    db.initialize(settings.database_url)
    with db.session() as session:
        IdentityResolver(session, settings).resolve(profile)
"""

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import Settings, get_settings
from .logging import get_logger

logger = get_logger("db")


class Base(DeclarativeBase):
    """Declarative base for users, linked accounts and refresh sessions."""


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # Linked accounts and sessions cascade with their user
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, echo: bool = False, settings: Settings | None = None) -> Engine:
    """
    Create an engine for ``url``.

    SQLite shares one connection through a StaticPool so an in-memory
    database lives as long as the engine. Other backends use a QueuePool
    sized from settings.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
        _enable_sqlite_foreign_keys(engine)
        return engine

    settings = settings or get_settings()
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        echo=echo,
    )


class DatabaseManager:
    """Singleton holder of the engine and session factory."""

    _instance: Optional["DatabaseManager"] = None

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.engine = None
            cls._instance.SessionLocal = None
        return cls._instance

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def initialize(self, database_url: str | None = None) -> None:
        """Create the engine once; later calls are no-ops until reset()."""
        if self.is_initialized:
            return

        settings = get_settings()
        url = database_url or settings.database_url
        self.engine = build_engine(url, echo=settings.debug, settings=settings)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.info("database_engine_created", backend=self.engine.dialect.name)

    def create_all_tables(self) -> None:
        self._ensure_initialized()
        # Importing the models registers their tables on Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """One transaction: commit on success, roll back on any error."""
        self._ensure_initialized()
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> dict[str, Any]:
        """Run ``SELECT 1``; report health, latency in ms and any error."""
        if not self.is_initialized:
            return {"healthy": False, "latency_ms": 0.0, "error": "Database not initialized"}

        start = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("database_health_check_failed", error_type=type(exc).__name__)
            error: str | None = type(exc).__name__
        else:
            error = None
        latency = round((time.perf_counter() - start) * 1000, 2)
        return {"healthy": error is None, "latency_ms": latency, "error": error}

    def reset(self) -> None:
        """Dispose the engine so the next initialize() starts fresh."""
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.SessionLocal = None

    def _ensure_initialized(self) -> None:
        if not self.is_initialized:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")


db = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped transaction."""
    with db.session() as session:
        yield session


__all__ = ["Base", "DatabaseManager", "build_engine", "db", "get_db"]
