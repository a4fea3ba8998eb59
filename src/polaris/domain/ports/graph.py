"""Port for the transactional property-graph backend.

A ``GraphStore`` instance is bound to one open transaction (see
``polaris.domain.ports.unit_of_work``). Nothing it does is visible to other
transactions until the owning unit of work commits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from polaris.domain.model import (
        AliasRecord,
        ClaimRecord,
        EdgeRecord,
        EntityRecord,
        IdentityMapping,
        RelationshipType,
        Tombstone,
    )


@runtime_checkable
class GraphStore(Protocol):
    """Transaction-scoped access to entities, aliases, edges, claims and mappings."""

    @property
    def supports_atomic_retarget(self) -> bool:
        """Whether ``retarget_edge`` moves an edge endpoint in a single operation."""
        ...

    # entities ---------------------------------------------------------------

    def get_entity(self, entity_id: str, *, for_update: bool = False) -> EntityRecord | None: ...

    def add_entity(self, entity: EntityRecord) -> bool:
        """Insert ``entity`` unless its id exists; return whether a row was created."""
        ...

    def set_entity_properties(
        self,
        entity_id: str,
        properties: Mapping[str, object],
        *,
        updated_by: str | None,
        updated_at: datetime,
    ) -> None: ...

    def mark_merged(self, entity_id: str, tombstone: Tombstone) -> None:
        """Tombstone a live entity; raises ``IntegrityViolation`` if it is gone or merged."""
        ...

    def record_absorption(self, survivor_id: str, *, count: int, merged_at: datetime) -> None: ...

    # aliases ----------------------------------------------------------------

    def get_alias(self, alias_id: str) -> AliasRecord | None: ...

    def add_alias(self, alias: AliasRecord) -> bool: ...

    # edges ------------------------------------------------------------------

    def add_edge(self, edge: EdgeRecord) -> bool:
        """Insert ``edge``; an existing ``edge_key`` makes this a no-op returning False."""
        ...

    def find_edges(
        self,
        *,
        source_id: str | None = None,
        target_id: str | None = None,
        rel_type: RelationshipType | None = None,
    ) -> list[EdgeRecord]: ...

    def incident_edges(self, node_id: str) -> list[EdgeRecord]: ...

    def retarget_edge(
        self,
        edge: EdgeRecord,
        *,
        source_id: str | None = None,
        target_id: str | None = None,
    ) -> EdgeRecord:
        """Move one or both endpoints of ``edge`` keeping its type and properties."""
        ...

    def delete_edge(self, edge_id: str) -> None: ...

    def promote_edge(self, edge_id: str, *, edge_key: str | None) -> None:
        """Clear the pending-retarget marker of an edge created by a simulated retarget."""
        ...

    def delete_incident_edges(self, node_id: str) -> int: ...

    def pending_retarget_count(self) -> int: ...

    # claims -----------------------------------------------------------------

    def add_claim(self, claim: ClaimRecord) -> bool: ...

    def claims_about(self, entity_id: str) -> list[ClaimRecord]: ...

    def move_claim(
        self,
        claim_id: str,
        *,
        entity_id: str,
        merged_from: str,
        merged_at: datetime,
        merged_by: str,
    ) -> None: ...

    # identity map -----------------------------------------------------------

    def get_identity_mapping(self, key: str) -> IdentityMapping | None: ...

    def upsert_identity_mapping(self, mapping: IdentityMapping) -> IdentityMapping: ...
