"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_bool_env, optional_int_env
from .errors import ConfigurationError
from .ingest import IngestConfig, get_ingest_config
from .logging import configure_logging
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "IngestConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_ingest_config",
    "get_storage_config",
    "optional_bool_env",
    "optional_int_env",
]
