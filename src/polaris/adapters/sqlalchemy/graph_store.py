"""Graph store backed by SQLAlchemy Core statements on the unit-of-work session."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import delete, func, insert, or_, select, update

from polaris.adapters.sqlalchemy.mappings import (
    alias_table,
    claim_table,
    edge_table,
    entity_table,
    identity_map_table,
)
from polaris.domain.errors import IntegrityViolation, NotFoundError
from polaris.domain.model import (
    AliasRecord,
    ClaimRecord,
    EdgeRecord,
    EntityRecord,
    EntityStatus,
    IdentityMapping,
    ResolutionMethod,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from sqlalchemy import Row
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from polaris.domain.model import RelationshipType, Tombstone

log = logging.getLogger(__name__)


def _entity_from_row(row: Row[Any]) -> EntityRecord:
    data = row._mapping  # noqa: SLF001
    return EntityRecord(
        id=data["id"],
        entity_type=data["entity_type"],
        status=data["status"],
        properties=dict(data["properties"] or {}),
        created_at=data["created_at"],
        created_by=data["created_by"],
        creation_source=data["creation_source"],
        event_hash=data["event_hash"],
        updated_at=data["updated_at"],
        updated_by=data["updated_by"],
        absorbed_count=data["absorbed_count"] or 0,
        last_merged_at=data["last_merged_at"],
        merged_into=data["merged_into"],
        merged_at=data["merged_at"],
        merged_by=data["merged_by"],
        merge_event_hash=data["merge_event_hash"],
        merge_evidence=data["merge_evidence"],
    )


def _resolution_method(value: str) -> ResolutionMethod | str:
    try:
        return ResolutionMethod(value)
    except ValueError:
        return value


def _edge_from_row(row: Row[Any]) -> EdgeRecord:
    data = row._mapping  # noqa: SLF001
    return EdgeRecord(
        edge_id=data["id"],
        rel_type=data["rel_type"],
        source_id=data["source_id"],
        target_id=data["target_id"],
        properties=dict(data["properties"] or {}),
        edge_key=data["edge_key"],
        pending_retarget=bool(data["pending_retarget"]),
    )


def _claim_from_row(row: Row[Any]) -> ClaimRecord:
    data = row._mapping  # noqa: SLF001
    return ClaimRecord(
        claim_id=data["claim_id"],
        entity_id=data["entity_id"],
        property=data["property"],
        value=data["value"],
        confidence=data["confidence"],
        created_at=data["created_at"],
        created_by=data["created_by"],
        event_hash=data["event_hash"],
        merged_from=data["merged_from"],
        merged_at=data["merged_at"],
        merged_by=data["merged_by"],
    )


def _mapping_from_row(row: Row[Any]) -> IdentityMapping:
    data = row._mapping  # noqa: SLF001
    return IdentityMapping(
        source=data["source"],
        external_type=data["external_type"],
        external_id=data["external_id"],
        canonical_id=data["canonical_id"],
        confidence=data["confidence"],
        evidence=data["evidence"] or "",
        created_by=data["created_by"],
        created_at=data["created_at"],
        updated_by=data["updated_by"],
        updated_at=data["updated_at"],
    )


class SqlAlchemyGraphStore:
    """``GraphStore`` bound to the session of one unit of work.

    Statements execute immediately on the session's connection, so later reads
    in the same transaction observe earlier writes without an explicit flush.
    """

    def __init__(self, session: Session, *, atomic_retarget: bool = True) -> None:
        self._session = session
        self._atomic_retarget = atomic_retarget

    @property
    def supports_atomic_retarget(self) -> bool:
        return self._atomic_retarget

    # entities ---------------------------------------------------------------

    def get_entity(self, entity_id: str, *, for_update: bool = False) -> EntityRecord | None:
        stmt = select(entity_table).where(entity_table.c.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.execute(stmt).first()
        return _entity_from_row(row) if row is not None else None

    def add_entity(self, entity: EntityRecord) -> bool:
        if self._exists(entity_table.c.id, entity.id):
            return False
        self._session.execute(
            insert(entity_table).values(
                id=entity.id,
                entity_type=entity.entity_type,
                status=entity.status,
                properties=dict(entity.properties),
                created_at=entity.created_at,
                created_by=entity.created_by,
                creation_source=entity.creation_source,
                event_hash=entity.event_hash,
                updated_at=entity.updated_at,
                updated_by=entity.updated_by,
                absorbed_count=entity.absorbed_count,
                last_merged_at=entity.last_merged_at,
                merged_into=entity.merged_into,
                merged_at=entity.merged_at,
                merged_by=entity.merged_by,
                merge_event_hash=entity.merge_event_hash,
                merge_evidence=entity.merge_evidence,
            )
        )
        return True

    def set_entity_properties(
        self,
        entity_id: str,
        properties: Mapping[str, object],
        *,
        updated_by: str | None,
        updated_at: datetime,
    ) -> None:
        entity = self.get_entity(entity_id, for_update=True)
        if entity is None:
            raise NotFoundError(f"Entity not found: {entity_id}")
        merged = {**entity.properties, **properties}
        self._session.execute(
            update(entity_table)
            .where(entity_table.c.id == entity_id)
            .values(properties=merged, updated_by=updated_by, updated_at=updated_at)
        )

    def mark_merged(self, entity_id: str, tombstone: Tombstone) -> None:
        result = self._session.execute(
            update(entity_table)
            .where(entity_table.c.id == entity_id)
            .where(entity_table.c.status != EntityStatus.MERGED)
            .values(
                status=EntityStatus.MERGED,
                merged_into=tombstone.merged_into,
                merged_at=tombstone.merged_at,
                merged_by=tombstone.merged_by,
                merge_event_hash=tombstone.merge_event_hash,
                merge_evidence=tombstone.merge_evidence,
            )
        )
        if cast("CursorResult[Any]", result).rowcount == 0:
            # another transaction tombstoned it after our read
            raise IntegrityViolation(f"Entity {entity_id} is missing or already merged")

    def record_absorption(self, survivor_id: str, *, count: int, merged_at: datetime) -> None:
        self._session.execute(
            update(entity_table)
            .where(entity_table.c.id == survivor_id)
            .values(
                absorbed_count=func.coalesce(entity_table.c.absorbed_count, 0) + count,
                last_merged_at=merged_at,
            )
        )

    # aliases ----------------------------------------------------------------

    def get_alias(self, alias_id: str) -> AliasRecord | None:
        row = self._session.execute(
            select(alias_table).where(alias_table.c.id == alias_id)
        ).first()
        if row is None:
            return None
        data = row._mapping  # noqa: SLF001
        return AliasRecord(
            id=data["id"],
            alias_kind=data["alias_kind"],
            resolution_method=_resolution_method(data["resolution_method"]),
            created_at=data["created_at"],
            created_by=data["created_by"],
        )

    def add_alias(self, alias: AliasRecord) -> bool:
        if self._exists(alias_table.c.id, alias.id):
            return False
        self._session.execute(
            insert(alias_table).values(
                id=alias.id,
                alias_kind=alias.alias_kind,
                resolution_method=str(alias.resolution_method),
                created_at=alias.created_at,
                created_by=alias.created_by,
            )
        )
        return True

    # edges ------------------------------------------------------------------

    def add_edge(self, edge: EdgeRecord) -> bool:
        if edge.edge_key is not None and self._exists(edge_table.c.edge_key, edge.edge_key):
            return False
        self._session.execute(
            insert(edge_table).values(
                id=edge.edge_id,
                rel_type=edge.rel_type,
                source_id=edge.source_id,
                target_id=edge.target_id,
                properties=dict(edge.properties),
                edge_key=edge.edge_key,
                pending_retarget=edge.pending_retarget,
            )
        )
        return True

    def find_edges(
        self,
        *,
        source_id: str | None = None,
        target_id: str | None = None,
        rel_type: RelationshipType | None = None,
    ) -> list[EdgeRecord]:
        stmt = select(edge_table)
        if source_id is not None:
            stmt = stmt.where(edge_table.c.source_id == source_id)
        if target_id is not None:
            stmt = stmt.where(edge_table.c.target_id == target_id)
        if rel_type is not None:
            stmt = stmt.where(edge_table.c.rel_type == rel_type)
        rows = self._session.execute(stmt.order_by(edge_table.c.id)).all()
        return [_edge_from_row(row) for row in rows]

    def incident_edges(self, node_id: str) -> list[EdgeRecord]:
        rows = self._session.execute(
            select(edge_table)
            .where(or_(edge_table.c.source_id == node_id, edge_table.c.target_id == node_id))
            .order_by(edge_table.c.id)
        ).all()
        return [_edge_from_row(row) for row in rows]

    def retarget_edge(
        self,
        edge: EdgeRecord,
        *,
        source_id: str | None = None,
        target_id: str | None = None,
    ) -> EdgeRecord:
        moved = replace(
            edge,
            source_id=source_id or edge.source_id,
            target_id=target_id or edge.target_id,
        )
        result = self._session.execute(
            update(edge_table)
            .where(edge_table.c.id == edge.edge_id)
            .values(source_id=moved.source_id, target_id=moved.target_id)
        )
        if cast("CursorResult[Any]", result).rowcount == 0:
            raise NotFoundError(f"Edge not found: {edge.edge_id}")
        return moved

    def delete_edge(self, edge_id: str) -> None:
        self._session.execute(delete(edge_table).where(edge_table.c.id == edge_id))

    def promote_edge(self, edge_id: str, *, edge_key: str | None) -> None:
        result = self._session.execute(
            update(edge_table)
            .where(edge_table.c.id == edge_id)
            .values(pending_retarget=False, edge_key=edge_key)
        )
        if cast("CursorResult[Any]", result).rowcount == 0:
            raise NotFoundError(f"Edge not found: {edge_id}")

    def delete_incident_edges(self, node_id: str) -> int:
        result = self._session.execute(
            delete(edge_table).where(
                or_(edge_table.c.source_id == node_id, edge_table.c.target_id == node_id)
            )
        )
        return cast("CursorResult[Any]", result).rowcount

    def pending_retarget_count(self) -> int:
        count = self._session.execute(
            select(func.count())
            .select_from(edge_table)
            .where(edge_table.c.pending_retarget.is_(True))
        ).scalar_one()
        return int(count)

    # claims -----------------------------------------------------------------

    def add_claim(self, claim: ClaimRecord) -> bool:
        if self._exists(claim_table.c.claim_id, claim.claim_id):
            return False
        self._session.execute(
            insert(claim_table).values(
                claim_id=claim.claim_id,
                entity_id=claim.entity_id,
                property=claim.property,
                value=claim.value,
                confidence=claim.confidence,
                created_at=claim.created_at,
                created_by=claim.created_by,
                event_hash=claim.event_hash,
                merged_from=claim.merged_from,
                merged_at=claim.merged_at,
                merged_by=claim.merged_by,
            )
        )
        return True

    def claims_about(self, entity_id: str) -> list[ClaimRecord]:
        rows = self._session.execute(
            select(claim_table)
            .where(claim_table.c.entity_id == entity_id)
            .order_by(claim_table.c.claim_id)
        ).all()
        return [_claim_from_row(row) for row in rows]

    def move_claim(
        self,
        claim_id: str,
        *,
        entity_id: str,
        merged_from: str,
        merged_at: datetime,
        merged_by: str,
    ) -> None:
        self._session.execute(
            update(claim_table)
            .where(claim_table.c.claim_id == claim_id)
            .values(
                entity_id=entity_id,
                merged_from=merged_from,
                merged_at=merged_at,
                merged_by=merged_by,
            )
        )

    # identity map -----------------------------------------------------------

    def get_identity_mapping(self, key: str) -> IdentityMapping | None:
        row = self._session.execute(
            select(identity_map_table).where(identity_map_table.c.key == key)
        ).first()
        return _mapping_from_row(row) if row is not None else None

    def upsert_identity_mapping(self, mapping: IdentityMapping) -> IdentityMapping:
        values = {
            "source": mapping.source,
            "external_type": mapping.external_type,
            "external_id": mapping.external_id,
            "canonical_id": mapping.canonical_id,
            "confidence": mapping.confidence,
            "evidence": mapping.evidence,
            "created_by": mapping.created_by,
            "created_at": mapping.created_at,
            "updated_by": mapping.updated_by,
            "updated_at": mapping.updated_at,
        }
        if self._exists(identity_map_table.c.key, mapping.key):
            self._session.execute(
                update(identity_map_table)
                .where(identity_map_table.c.key == mapping.key)
                .values(**values)
            )
        else:
            self._session.execute(insert(identity_map_table).values(key=mapping.key, **values))
        return mapping

    # helpers ----------------------------------------------------------------

    def _exists(self, column: Any, value: str) -> bool:
        stmt = select(column).where(column == value).limit(1)
        return self._session.execute(stmt).first() is not None
