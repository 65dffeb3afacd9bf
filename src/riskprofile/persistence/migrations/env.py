"""Alembic environment for riskprofile migrations.

Executed by Alembic only. Uses the connection handed over through
``config.attributes["connection"]`` when present (programmatic runs, see
riskprofile.persistence.migrate), otherwise RISKPROFILE_DATABASE_ADMIN_URL.
"""

from __future__ import annotations

import logging

from alembic import context

from riskprofile.persistence.db import get_admin_engine, get_database_url
from riskprofile.persistence.schema import metadata

logger = logging.getLogger(__name__)

target_metadata = metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to stdout."""
    url = get_database_url(admin=True)
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connection = context.config.attributes.get("connection")
    if connection is not None:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
        return

    engine = get_admin_engine()
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
