"""SQLAlchemy adapter for the registry graph and event store."""

from __future__ import annotations

from polaris.adapters.sqlalchemy.event_store import SqlAlchemyEventStore
from polaris.adapters.sqlalchemy.graph_store import SqlAlchemyGraphStore
from polaris.adapters.sqlalchemy.mappings import create_all_tables, mapper_registry

__all__ = [
    "SqlAlchemyEventStore",
    "SqlAlchemyGraphStore",
    "create_all_tables",
    "mapper_registry",
]
