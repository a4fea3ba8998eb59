from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from polaris.adapters.sqlalchemy import SqlAlchemyEventStore
from polaris.adapters.sqlalchemy.migrations import upgrade_head
from polaris.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyGraphUnitOfWork,
    configured_session_factory,
    shutdown,
    startup,
)
from tests.helpers.registry import FixedClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyGraphUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyGraphUnitOfWork:
        return SqlAlchemyGraphUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def sqlite_event_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
) -> SqlAlchemyEventStore:
    _ = sqlite_unit_of_work
    return SqlAlchemyEventStore(configured_session_factory())


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 1, 1, 12, 0, tzinfo=UTC))
