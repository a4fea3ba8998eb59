"""Public domain model surface."""

from __future__ import annotations

from polaris.domain.model.enums import (
    AliasKind,
    EntityStatus,
    EntityType,
    EventType,
    ExternalSource,
    IdKind,
    IngestStatus,
    RelationshipType,
    ResolutionMethod,
)
from polaris.domain.model.events import Event, StoredEvent
from polaris.domain.model.records import (
    AliasRecord,
    ClaimRecord,
    EdgeRecord,
    EntityRecord,
    IdentityMapping,
    Tombstone,
    new_edge_id,
    utcnow,
)

__all__ = [  # noqa: RUF022
    # records
    "AliasRecord",
    "ClaimRecord",
    "EdgeRecord",
    "EntityRecord",
    "IdentityMapping",
    "Tombstone",
    "new_edge_id",
    "utcnow",
    # events
    "Event",
    "StoredEvent",
    # enums
    "AliasKind",
    "EntityStatus",
    "EntityType",
    "EventType",
    "ExternalSource",
    "IdKind",
    "IngestStatus",
    "RelationshipType",
    "ResolutionMethod",
]
