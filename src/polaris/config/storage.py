"""Where the registry keeps its database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from .env import optional_bool_env

APP_DIR_NAME: Final[str] = "polaris"
DEFAULT_DB_FILENAME: Final[str] = "polaris.db"


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / APP_DIR_NAME


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @classmethod
    def from_env(cls) -> StorageConfig:
        env_dir = os.getenv("POLARIS_DATA_DIR")
        return cls(data_dir=Path(env_dir) if env_dir else _default_data_dir())

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self, *, ensure: bool = True) -> Path:
        data_dir = self.resolve_data_dir()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for ``sqlalchemy.create_engine``."""

        options: dict[str, Any] = {"future": True, "echo": self.echo}
        if not self.is_sqlite:
            # server databases drop idle connections behind our back
            options["pool_pre_ping"] = True
        return options


def get_storage_config() -> StorageConfig:
    return StorageConfig.from_env()


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file under the data directory."""

    echo = optional_bool_env("POLARIS_DB_ECHO")
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri(), echo=echo)


def get_database_uri() -> str:
    return get_database_config().uri
