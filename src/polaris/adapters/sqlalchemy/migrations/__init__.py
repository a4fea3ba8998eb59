"""Alembic migrations shipped inside the SQLAlchemy adapter.

The scripts live next to this module so installed copies can migrate without
a checkout; ``[tool.alembic]`` in pyproject.toml points the ``alembic`` CLI at
the same directory during development.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from polaris.config import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

log = logging.getLogger(__name__)


def build_config(*, database_uri: str | None = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(build_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    """Revision stamped in the database behind ``engine`` (None before the first upgrade)."""

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision.

    An explicit ``engine`` is handed to the migration environment as an open
    connection, which keeps in-memory SQLite databases alive across the upgrade.
    """

    if engine is not None:
        config = build_config()
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        return
    uri = database_uri or get_database_uri()
    log.info("Upgrading schema at %s", uri)
    command.upgrade(build_config(database_uri=uri), "head")
