"""SQLAlchemy-backed units of work for the registry graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Self

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from polaris.adapters.sqlalchemy.graph_store import SqlAlchemyGraphStore
from polaris.adapters.sqlalchemy.mappings import create_all_tables
from polaris.adapters.sqlalchemy.migrations import upgrade_head
from polaris.config import DatabaseConfig, get_database_config
from polaris.domain.ports import RegistryRepositories

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

    from polaris.domain.ports import GraphStore

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


def _uses_sqlite_file(engine: Engine) -> bool:
    url = engine.url
    return url.get_backend_name() == "sqlite" and url.database not in {None, "", ":memory:"}


def _disable_driver_transactions(dbapi_connection: Any, _connection_record: Any) -> None:
    dbapi_connection.isolation_level = None


def _begin_immediate(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN IMMEDIATE")


def use_immediate_transactions(engine: Engine) -> None:
    """Make transactions on a file-backed SQLite engine take the write lock up front.

    pysqlite only emits BEGIN before the first write, so whatever a unit of work
    read earlier may already be stale when it writes. ``BEGIN IMMEDIATE`` makes
    a second writer wait at its first statement instead. In-memory databases
    live on a single connection and are left alone.
    """

    if not _uses_sqlite_file(engine) or event.contains(engine, "begin", _begin_immediate):
        return
    event.listen(engine, "connect", _disable_driver_transactions)
    event.listen(engine, "begin", _begin_immediate)
    # pooled connections predate the connect hook
    engine.dispose()


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call polaris.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
    migrate: bool = True,
) -> None:
    """Initialise the SQLAlchemy engine, schema, and session factory.

    With ``migrate=False`` the tables are created straight from the metadata,
    which is enough for throwaway databases.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is None:
        database = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        engine = create_engine(database.uri, **database.engine_options())
    use_immediate_transactions(engine)
    if migrate:
        upgrade_head(engine=engine)
    else:
        create_all_tables(engine)

    log.info("SQLAlchemy adapter started on %s", engine.url)
    _STATE.engine = engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def configured_session_factory() -> sessionmaker[Session]:
    """Return the session factory bound to the managed engine."""

    return _STATE.session_factory


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyGraphUnitOfWork:
    """One registry transaction over a SQLAlchemy session.

    Writes are kept only when ``commit()`` is called inside the block; an
    exception rolls back before the session closes. ``graph_factory`` swaps in a
    store variant, e.g. one without atomic edge retargeting.
    """

    def __init__(
        self, graph_factory: Callable[[Session], GraphStore] = SqlAlchemyGraphStore
    ) -> None:
        self._session_factory = _STATE.session_factory
        self._graph_factory = graph_factory
        self._session: Session | None = None
        self._repositories: RegistryRepositories | None = None

    def __enter__(self) -> Self:
        if self._session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = self._session_factory()
        self._repositories = RegistryRepositories(graph=self._graph_factory(self._session))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                log.debug("Rolling back unit of work after %s", exc_type.__name__)
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @property
    def repositories(self) -> RegistryRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from polaris.domain.ports import GraphUnitOfWork

    _uow_check: GraphUnitOfWork = SqlAlchemyGraphUnitOfWork()
