from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from polaris.config import (
    DatabaseConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)
from polaris.config.storage import DEFAULT_DB_FILENAME


def test_storage_config_prefers_explicit_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("POLARIS_DATA_DIR", str(custom))

    result = get_storage_config().resolve_data_dir()

    assert result == custom.resolve()


def test_storage_config_defaults_to_xdg_data_home(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("POLARIS_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    result = get_storage_config().resolve_data_dir()

    assert result == (tmp_path / "polaris").resolve()


def test_get_database_uri_uses_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///override.db")

    uri = get_database_uri()

    assert uri == "sqlite:///override.db"


def test_get_database_uri_creates_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("POLARIS_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_database_uri()

    expected_path = (tmp_path / "data-dir" / DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()


def test_database_config_reads_echo_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://registry@db/polaris")
    monkeypatch.setenv("POLARIS_DB_ECHO", "true")

    config = get_database_config()

    assert config.echo
    assert not config.is_sqlite
    assert config.engine_options() == {"future": True, "echo": True, "pool_pre_ping": True}


def test_sqlite_engine_options_skip_pre_ping() -> None:
    config = DatabaseConfig(uri="sqlite+pysqlite:///:memory:")

    assert config.engine_options() == {"future": True, "echo": False}
