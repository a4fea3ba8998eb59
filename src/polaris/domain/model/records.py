"""Graph records exchanged between the domain and graph-store adapters.

Records are plain snapshots. They carry no behaviour that touches storage;
mutations always go through a ``GraphStore`` inside a unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from .enums import AliasKind, EntityStatus, ResolutionMethod

if TYPE_CHECKING:
    from .enums import EntityType, RelationshipType


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def new_edge_id() -> str:
    return uuid4().hex


@dataclass(slots=True, kw_only=True)
class EntityRecord:
    """A canonical (or not yet confirmed) real-world entity node."""

    id: str
    entity_type: EntityType
    status: EntityStatus = EntityStatus.ACTIVE
    properties: dict[str, object] = field(default_factory=dict[str, object])
    created_at: datetime | None = None
    created_by: str | None = None
    creation_source: str | None = None
    event_hash: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    absorbed_count: int = 0
    last_merged_at: datetime | None = None

    merged_into: str | None = None
    merged_at: datetime | None = None
    merged_by: str | None = None
    merge_event_hash: str | None = None
    merge_evidence: str | None = None

    @property
    def is_tombstone(self) -> bool:
        return self.status is EntityStatus.MERGED


@dataclass(slots=True, frozen=True, kw_only=True)
class Tombstone:
    """Redirect information written onto an absorbed entity."""

    merged_into: str
    merged_at: datetime
    merged_by: str
    merge_event_hash: str | None = None
    merge_evidence: str | None = None


@dataclass(slots=True, kw_only=True)
class AliasRecord:
    """Provisional or external identifier that only ever redirects."""

    id: str
    alias_kind: AliasKind = AliasKind.PROVISIONAL
    resolution_method: ResolutionMethod | str = ResolutionMethod.MANUAL
    created_at: datetime | None = None
    created_by: str | None = None


@dataclass(slots=True, kw_only=True)
class EdgeRecord:
    """Directed, typed relationship between two graph nodes."""

    edge_id: str = field(default_factory=new_edge_id)
    rel_type: RelationshipType
    source_id: str
    target_id: str
    properties: dict[str, object] = field(default_factory=dict[str, object])
    # deterministic key derived from the creating event; makes replays no-ops
    edge_key: str | None = None
    pending_retarget: bool = False

    @property
    def is_self_loop(self) -> bool:
        return self.source_id == self.target_id

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source_id, self.target_id)


@dataclass(slots=True, kw_only=True)
class ClaimRecord:
    """One provenance-tagged assertion about exactly one entity."""

    claim_id: str
    entity_id: str
    property: str
    value: object = None
    confidence: float = 1.0
    created_at: datetime | None = None
    created_by: str | None = None
    event_hash: str | None = None

    merged_from: str | None = None
    merged_at: datetime | None = None
    merged_by: str | None = None


@dataclass(slots=True, kw_only=True)
class IdentityMapping:
    """External catalog reference mapped onto one canonical entity."""

    source: str
    external_type: str
    external_id: str
    canonical_id: str
    confidence: float = 1.0
    evidence: str = ""
    created_by: str | None = None
    created_at: datetime | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> str:
        return self.key_for(self.source, self.external_type, self.external_id)

    @staticmethod
    def key_for(source: str, external_type: str, external_id: str) -> str:
        return f"{source}:{external_type}:{external_id}"
