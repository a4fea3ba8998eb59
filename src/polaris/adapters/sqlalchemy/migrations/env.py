"""Alembic environment for the registry schema."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from alembic import context
from sqlalchemy import create_engine, pool

from polaris.adapters.sqlalchemy.mappings import mapper_registry
from polaris.config import configure_logging, get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config
if not logging.getLogger().handlers:
    # invoked through the alembic CLI rather than from inside the app
    configure_logging()

# batch mode lets ALTERs run on SQLite, which cannot alter columns in place
_OPTIONS: dict[str, Any] = {
    "target_metadata": mapper_registry.metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_uri()


def _run(connection: Connection) -> None:
    context.configure(connection=connection, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without a database connection."""

    context.configure(url=_database_url(), literal_binds=True, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    shared: Connection | None = config.attributes.get("connection")
    if shared is not None:
        _run(shared)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.begin() as connection:
            _run(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
