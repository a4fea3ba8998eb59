"""Domain port definitions for adapters."""

from __future__ import annotations

from .events import EventStore, IdempotencyStore
from .graph import GraphStore
from .handlers import EventHandler, HandlerContext
from .unit_of_work import (
    GraphUnitOfWork,
    GraphUnitOfWorkFactory,
    RegistryRepositories,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "EventHandler",
    "EventStore",
    "GraphStore",
    "GraphUnitOfWork",
    "GraphUnitOfWorkFactory",
    "HandlerContext",
    "IdempotencyStore",
    "RegistryRepositories",
    "RepositoryCollection",
    "UnitOfWork",
]
