"""Relational store connectivity and connection helpers.

Provides engine creation and transactional connection management.

Environment Variables:
    RISKPROFILE_DATABASE_URL: Application connection string. When unset the
        services fall back to in-memory repositories.
    RISKPROFILE_DATABASE_ADMIN_URL: Connection string used for migrations.

PostgreSQL is the production store; any SQLAlchemy URL with atomic
multi-row writes works (SQLite is used in tests).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)

RISKPROFILE_DATABASE_URL_ENV = "RISKPROFILE_DATABASE_URL"
RISKPROFILE_DATABASE_ADMIN_URL_ENV = "RISKPROFILE_DATABASE_ADMIN_URL"

_app_engine: Engine | None = None
_admin_engine: Engine | None = None


class DatabaseConfigError(Exception):
    """Raised when database configuration is missing or invalid.

    This is a fail-closed error - operations requiring the database
    should not proceed without valid configuration.
    """


def is_database_configured() -> bool:
    """Check if a relational store is configured via environment."""
    return bool(os.environ.get(RISKPROFILE_DATABASE_URL_ENV))


def _normalize_url(url: str) -> str:
    """Rewrite the legacy ``postgres://`` scheme that SQLAlchemy rejects."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url(admin: bool = False) -> str:
    """Get the database URL from environment.

    Args:
        admin: If True, return admin URL; otherwise return app URL.

    Returns:
        Database connection string.

    Raises:
        DatabaseConfigError: If the required environment variable is not set.
    """
    env_var = RISKPROFILE_DATABASE_ADMIN_URL_ENV if admin else RISKPROFILE_DATABASE_URL_ENV
    url = os.environ.get(env_var)

    if not url:
        raise DatabaseConfigError(
            f"Database URL not configured. Set {env_var} environment variable."
        )

    return _normalize_url(url)


def _engine_options(url: str, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if url.startswith("postgresql"):
        return {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": True,
            "echo": False,
        }
    return {"echo": False}


def get_app_engine() -> Engine:
    """Get or create the application database engine.

    Raises:
        DatabaseConfigError: If RISKPROFILE_DATABASE_URL is not set.
    """
    global _app_engine

    if _app_engine is None:
        url = get_database_url(admin=False)
        _app_engine = create_engine(url, **_engine_options(url, 5, 10))
        logger.info("Created application database engine")

    return _app_engine


def get_admin_engine() -> Engine:
    """Get or create the admin (migration) database engine.

    Raises:
        DatabaseConfigError: If RISKPROFILE_DATABASE_ADMIN_URL is not set.
    """
    global _admin_engine

    if _admin_engine is None:
        url = get_database_url(admin=True)
        _admin_engine = create_engine(url, **_engine_options(url, 2, 5))
        logger.info("Created admin database engine")

    return _admin_engine


@contextmanager
def begin_app_conn() -> Generator[Connection, None, None]:
    """Context manager for an application connection with a transaction.

    Commits on success, rolls back on error.

    Yields:
        SQLAlchemy Connection in a transaction.

    Raises:
        DatabaseConfigError: If database is not configured.
        SQLAlchemyError: If database operation fails.
    """
    engine = get_app_engine()
    with engine.connect() as conn, conn.begin():
        logger.debug("Opened application transaction")
        yield conn


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from stores without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def reset_engines() -> None:
    """Dispose and forget cached engines. Used by tests."""
    global _app_engine, _admin_engine
    if _app_engine is not None:
        _app_engine.dispose()
        _app_engine = None
    if _admin_engine is not None:
        _admin_engine.dispose()
        _admin_engine = None
