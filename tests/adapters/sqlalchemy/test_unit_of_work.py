from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, text

from polaris.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyGraphUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
    use_immediate_transactions,
)
from polaris.domain.identity import mint
from polaris.domain.model import EntityRecord, EntityType
from polaris.domain.ports import GraphStore

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyGraphUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True, migrate=False)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True, migrate=False)
    assert configured_engine() is engine_b
    assert is_started()


def test_repositories_require_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyGraphUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories

    with uow:
        assert isinstance(uow.repositories.graph, GraphStore)
    with pytest.raises(StartupError):
        _ = uow.session


def test_unit_of_work_commits_and_rolls_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    committed = mint(EntityType.PERSON)
    discarded = mint(EntityType.PERSON)

    with SqlAlchemyGraphUnitOfWork() as uow:
        uow.repositories.graph.add_entity(EntityRecord(id=committed, entity_type=EntityType.PERSON))
        uow.commit()

    with pytest.raises(RuntimeError), SqlAlchemyGraphUnitOfWork() as uow:
        uow.repositories.graph.add_entity(EntityRecord(id=discarded, entity_type=EntityType.PERSON))
        raise RuntimeError("boom")

    with SqlAlchemyGraphUnitOfWork() as uow:
        graph = uow.repositories.graph
        assert graph.get_entity(committed) is not None
        assert graph.get_entity(discarded) is None


def test_shutdown_resets_state(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    shutdown()

    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyGraphUnitOfWork()


def test_immediate_transactions_only_for_sqlite_files(tmp_path: Path) -> None:
    memory_engine = create_engine("sqlite+pysqlite:///:memory:")
    file_engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'registry.db'}")

    use_immediate_transactions(memory_engine)
    use_immediate_transactions(file_engine)
    use_immediate_transactions(file_engine)

    with memory_engine.connect() as connection:
        assert connection.connection.dbapi_connection.isolation_level is not None
    with file_engine.begin() as connection:
        assert connection.connection.dbapi_connection.isolation_level is None
        assert connection.connection.dbapi_connection.in_transaction
        assert connection.execute(text("SELECT 1")).scalar_one() == 1
    file_engine.dispose()
    memory_engine.dispose()
