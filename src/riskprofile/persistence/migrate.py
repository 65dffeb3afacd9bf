"""Programmatic Alembic migration helpers.

Runs the migrations shipped in persistence/migrations without the alembic
CLI or an alembic.ini file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from alembic import command
from alembic.config import Config

from riskprofile.persistence.db import get_admin_engine

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_alembic_config() -> Config:
    """Create an Alembic config pointing to the migrations directory."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return config


def run_upgrade(engine: Engine | None = None, revision: str = "head") -> None:
    """Run migrations up to the specified revision.

    Args:
        engine: SQLAlchemy engine to use. If None, uses the admin engine.
        revision: Target revision (default: "head").

    Raises:
        DatabaseConfigError: If no engine is given and
            RISKPROFILE_DATABASE_ADMIN_URL is not set.
    """
    if engine is None:
        engine = get_admin_engine()

    config = get_alembic_config()

    with engine.begin() as conn:
        config.attributes["connection"] = conn
        command.upgrade(config, revision)

    logger.info("Migrations upgraded to %s", revision)
