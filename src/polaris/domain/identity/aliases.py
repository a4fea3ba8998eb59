"""Alias and external-mapping accessors.

The module-level functions run inside a caller's transaction and take the
``GraphStore`` bound to it. ``IdentityAccessors`` wraps each of them in its own
unit of work for callers outside the ingest path (API layer, CLI).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from polaris.domain.errors import IntegrityViolation, NotFoundError, ValidationError
from polaris.domain.identity.grammar import (
    classify,
    fingerprint,
    is_canonical,
    make_provisional_id,
    parse_entity_type,
)
from polaris.domain.model import (
    AliasKind,
    AliasRecord,
    EdgeRecord,
    IdentityMapping,
    IdKind,
    RelationshipType,
    ResolutionMethod,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from polaris.domain.model import EntityRecord, EntityType
    from polaris.domain.ports import GraphStore, GraphUnitOfWorkFactory


log = logging.getLogger(__name__)

EXTERNAL_ID_FIELDS: Final[dict[str, str]] = {
    "discogs_id": "discogs",
    "musicbrainz_id": "musicbrainz",
    "isni": "isni",
    "wikidata_id": "wikidata",
    "spotify_id": "spotify",
}


def alias_edge_key(alias_id: str, canonical_id: str) -> str:
    return f"alias:{alias_id}->{canonical_id}"


def create_alias(
    graph: GraphStore,
    alias_id: str,
    canonical_id: str,
    *,
    created_by: str = "system",
    kind: AliasKind | None = None,
    method: ResolutionMethod | str = ResolutionMethod.MANUAL,
    now: datetime | None = None,
) -> str:
    """Point ``alias_id`` at ``canonical_id`` and return the live target id.

    The target is looked up before anything is written; a missing target
    raises ``NotFoundError`` and leaves no alias behind. A tombstoned target is
    followed to its survivor. Pointing an existing alias somewhere else replaces
    its previous edge.
    """

    if not isinstance(alias_id, str) or not alias_id.strip():
        raise ValidationError("Alias id must be a non-empty string")
    parsed = classify(alias_id)
    if parsed.kind is IdKind.CANONICAL:
        raise ValidationError(f"Canonical id cannot be used as an alias: {alias_id}")

    target = graph.get_entity(canonical_id, for_update=True)
    if target is None:
        raise NotFoundError(f"Alias target not found: {canonical_id}")
    target = follow_merges(graph, target)

    if kind is None:
        kind = AliasKind.EXTERNAL if parsed.kind is IdKind.EXTERNAL else AliasKind.PROVISIONAL
    created_at = now or utcnow()

    graph.add_alias(
        AliasRecord(
            id=alias_id,
            alias_kind=kind,
            resolution_method=method,
            created_at=created_at,
            created_by=created_by,
        )
    )
    current = False
    for existing in graph.find_edges(source_id=alias_id, rel_type=RelationshipType.ALIAS_OF):
        if existing.target_id == target.id:
            # a merge may have retargeted it while keeping its old edge key
            current = True
        else:
            graph.delete_edge(existing.edge_id)
    if current:
        return target.id
    created = graph.add_edge(
        EdgeRecord(
            rel_type=RelationshipType.ALIAS_OF,
            source_id=alias_id,
            target_id=target.id,
            properties={
                "alias_kind": str(kind),
                "resolution_method": str(method),
                "created_at": created_at.isoformat(),
                "created_by": created_by,
            },
            edge_key=alias_edge_key(alias_id, target.id),
        )
    )
    if created:
        log.info("Created alias %s -> %s", alias_id, target.id)
    return target.id


def follow_merges(graph: GraphStore, entity: EntityRecord) -> EntityRecord:
    """Walk ``merged_into`` pointers from ``entity`` to the live survivor."""

    visited = {entity.id}
    current = entity
    while current.is_tombstone and current.merged_into:
        next_id = current.merged_into
        if next_id in visited:
            raise IntegrityViolation(f"Merge redirect cycle detected at {next_id}")
        visited.add(next_id)
        successor = graph.get_entity(next_id)
        if successor is None:
            raise IntegrityViolation(f"Tombstone {current.id} redirects to missing {next_id}")
        current = successor
    return current


def resolve_to_canonical(graph: GraphStore, identifier: str) -> str:
    """Resolve any known identifier to the id of the live entity it denotes."""

    entity_id = identifier
    if graph.get_alias(identifier) is not None:
        edges = graph.find_edges(source_id=identifier, rel_type=RelationshipType.ALIAS_OF)
        if not edges:
            raise IntegrityViolation(f"Alias {identifier} has no ALIAS_OF edge")
        entity_id = edges[0].target_id
    else:
        parsed = classify(identifier)
        if parsed.kind is IdKind.EXTERNAL and parsed.valid:
            mapping = graph.get_identity_mapping(identifier)
            if mapping is not None:
                entity_id = mapping.canonical_id

    entity = graph.get_entity(entity_id)
    if entity is None:
        raise NotFoundError(f"Entity not found: {identifier}")
    return follow_merges(graph, entity).id


def create_external_mapping(  # noqa: PLR0913
    graph: GraphStore,
    source: str,
    external_type: str,
    external_id: str,
    canonical_id: str,
    *,
    confidence: float = 1.0,
    submitter: str = "system",
    evidence: str = "",
    now: datetime | None = None,
) -> IdentityMapping:
    """Upsert ``source:external_type:external_id`` onto ``canonical_id`` (last write wins)."""

    if not (source and external_type and external_id and canonical_id):
        raise ValidationError(
            "Identity mapping requires source, external_type, external_id and canonical_id"
        )
    if not is_canonical(canonical_id):
        raise ValidationError(f"Canonical id required, got: {canonical_id}")

    timestamp = now or utcnow()
    key = IdentityMapping.key_for(source, external_type, external_id)
    existing = graph.get_identity_mapping(key)
    mapping = IdentityMapping(
        source=source,
        external_type=external_type,
        external_id=external_id,
        canonical_id=canonical_id,
        confidence=confidence,
        evidence=evidence,
        created_by=existing.created_by if existing else submitter,
        created_at=existing.created_at if existing else timestamp,
        updated_by=submitter if existing else None,
        updated_at=timestamp if existing else None,
    )
    log.info("Mapping %s -> %s", key, canonical_id)
    return graph.upsert_identity_mapping(mapping)


def resolve_external_mapping(
    graph: GraphStore, source: str, external_type: str, external_id: str
) -> str:
    key = IdentityMapping.key_for(source, external_type, external_id)
    mapping = graph.get_identity_mapping(key)
    if mapping is None:
        raise NotFoundError(f"No identity mapping for {key}")
    return mapping.canonical_id


def resolve_entity_id(
    graph: GraphStore, entity_type: EntityType | str, data: Mapping[str, object]
) -> str:
    """Pick the id a bundle entity should be written under.

    Explicit canonical ids win, then identity-map hits for explicit or
    well-known external id fields, then a deterministic provisional id.
    """

    resolved_type = parse_entity_type(entity_type)
    explicit = data.get(f"{resolved_type.value}_id")
    if isinstance(explicit, str) and explicit:
        parsed = classify(explicit)
        if parsed.kind is IdKind.CANONICAL and parsed.valid:
            entity = graph.get_entity(explicit)
            return follow_merges(graph, entity).id if entity else explicit
        if parsed.kind is IdKind.EXTERNAL and parsed.valid:
            mapping = graph.get_identity_mapping(explicit)
            if mapping is not None:
                return _live_id(graph, mapping.canonical_id)
            log.debug("External id %s not mapped yet", explicit)

    for field_name, source in EXTERNAL_ID_FIELDS.items():
        value = data.get(field_name)
        if not value:
            continue
        key = IdentityMapping.key_for(source, resolved_type.value, str(value))
        mapping = graph.get_identity_mapping(key)
        if mapping is not None:
            return _live_id(graph, mapping.canonical_id)

    return make_provisional_id(resolved_type, fingerprint(resolved_type, data))


def _live_id(graph: GraphStore, entity_id: str) -> str:
    entity = graph.get_entity(entity_id)
    return follow_merges(graph, entity).id if entity else entity_id


class IdentityAccessors:
    """Alias and mapping operations, each committed in its own transaction."""

    def __init__(
        self,
        unit_of_work_factory: GraphUnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._clock = clock

    def create_alias(
        self,
        alias_id: str,
        canonical_id: str,
        *,
        created_by: str = "system",
        kind: AliasKind | None = None,
        method: ResolutionMethod | str = ResolutionMethod.MANUAL,
    ) -> str:
        with self._uow_factory() as uow:
            target = create_alias(
                uow.repositories.graph,
                alias_id,
                canonical_id,
                created_by=created_by,
                kind=kind,
                method=method,
                now=self._clock(),
            )
            uow.commit()
        return target

    def resolve_to_canonical(self, identifier: str) -> str:
        with self._uow_factory() as uow:
            return resolve_to_canonical(uow.repositories.graph, identifier)

    def create_external_mapping(  # noqa: PLR0913
        self,
        source: str,
        external_type: str,
        external_id: str,
        canonical_id: str,
        *,
        confidence: float = 1.0,
        submitter: str = "system",
        evidence: str = "",
    ) -> IdentityMapping:
        with self._uow_factory() as uow:
            mapping = create_external_mapping(
                uow.repositories.graph,
                source,
                external_type,
                external_id,
                canonical_id,
                confidence=confidence,
                submitter=submitter,
                evidence=evidence,
                now=self._clock(),
            )
            uow.commit()
        return mapping

    def resolve_external_mapping(self, source: str, external_type: str, external_id: str) -> str:
        with self._uow_factory() as uow:
            return resolve_external_mapping(
                uow.repositories.graph, source, external_type, external_id
            )
