"""Shared logging helpers for Polaris."""

from __future__ import annotations

import logging
import os

# chatty at INFO; only their warnings are interesting on the CLI
QUIET_LOGGERS = ("alembic.runtime.migration", "sqlalchemy.engine")


def _level_from_env(default: int) -> int:
    name = os.getenv("POLARIS_LOG_LEVEL", "").strip().upper()
    if not name:
        return default
    level = logging.getLevelNamesMapping().get(name)
    return default if level is None else level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    An explicit ``level`` wins over ``POLARIS_LOG_LEVEL``; without either we log
    at INFO. Pass ``force=True`` to reconfigure an already configured root logger.
    """

    effective = level if level is not None else _level_from_env(logging.INFO)
    logging.basicConfig(
        level=effective,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    if effective > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
