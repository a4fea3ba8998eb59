"""Typed handlers for registry events.

Each handler validates the event body, runs its mutation in one unit of work
and returns a small JSON-friendly summary. Errors are raised as
``PolarisError`` subclasses; the pipeline turns them into ``failed`` results.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from polaris.domain.bundles.release_bundle import ReleaseBundleHandler
from polaris.domain.errors import TypeMismatchError, ValidationError
from polaris.domain.identity.aliases import (
    create_alias,
    create_external_mapping,
    resolve_to_canonical,
)
from polaris.domain.identity.grammar import classify, is_canonical, parse_entity_type
from polaris.domain.identity.minting import InitialClaim, claim_id_for, mint_entity
from polaris.domain.ingest_pipeline.schema import (
    ClaimBody,
    MergeEntityBody,
    MintEntityBody,
    ResolveIdBody,
)
from polaris.domain.merge.engine import MergeOptions
from polaris.domain.model import AliasKind, ClaimRecord, EventType, IdKind, utcnow
from polaris.domain.validation import parse_body

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from polaris.domain.merge.engine import MergeEngine
    from polaris.domain.model import Event
    from polaris.domain.ports import EventHandler, GraphUnitOfWorkFactory, HandlerContext


log = logging.getLogger(__name__)


class MintEntityHandler:
    """MINT_ENTITY: create a canonical entity (idempotent on replay)."""

    def __init__(
        self,
        unit_of_work_factory: GraphUnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._clock = clock

    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]:
        body = parse_body(MintEntityBody, event.body)
        entity_type = parse_entity_type(body.entity_type)
        claims = [
            InitialClaim(property=claim.property, value=claim.value, confidence=claim.confidence)
            for claim in body.initial_claims
        ]
        with self._uow_factory() as uow:
            outcome = mint_entity(
                uow.repositories.graph,
                entity_type,
                canonical_id=body.canonical_id,
                created_by=body.provenance.submitter or context.author,
                source=body.provenance.source,
                event_hash=context.event_hash,
                initial_claims=claims,
                now=self._clock(),
            )
            uow.commit()
        return {
            "status": "processed",
            "entity_id": outcome.entity_id,
            "created": outcome.created,
            "claims_added": outcome.claims_added,
        }


class ResolveIdHandler:
    """RESOLVE_ID: map an external id or alias a provisional id onto a canonical entity."""

    def __init__(
        self,
        unit_of_work_factory: GraphUnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._clock = clock

    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]:
        body = parse_body(ResolveIdBody, event.body)
        if not is_canonical(body.canonical_id):
            raise ValidationError(f"Target must be a canonical id, got: {body.canonical_id}")
        subject = classify(body.subject_id)
        if subject.kind is IdKind.CANONICAL:
            raise ValidationError(
                "Subject must be provisional or external; use MERGE_ENTITY for canonical ids"
            )
        if not subject.valid:
            raise ValidationError(f"Malformed subject id: {body.subject_id!r}")

        with self._uow_factory() as uow:
            graph = uow.repositories.graph
            if subject.kind is IdKind.EXTERNAL:
                create_external_mapping(
                    graph,
                    subject.fields["source"],
                    subject.fields["external_type"],
                    subject.fields["external_id"],
                    body.canonical_id,
                    confidence=body.confidence,
                    submitter=context.author,
                    evidence=body.evidence,
                    now=self._clock(),
                )
                resolved = body.canonical_id
            else:
                resolved = create_alias(
                    graph,
                    body.subject_id,
                    body.canonical_id,
                    created_by=context.author or "system",
                    kind=AliasKind.PROVISIONAL,
                    method=body.method,
                    now=self._clock(),
                )
            uow.commit()
        return {
            "status": "processed",
            "subject_id": body.subject_id,
            "subject_kind": str(subject.kind),
            "canonical_id": resolved,
        }


class MergeEntityHandler:
    """MERGE_ENTITY: delegate to the merge engine."""

    def __init__(self, merge_engine: MergeEngine) -> None:
        self._engine = merge_engine

    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]:
        body = parse_body(MergeEntityBody, event.body)
        result = self._engine.merge(
            body.survivor_id,
            body.absorbed_ids,
            MergeOptions(
                submitter=body.submitter or context.author or "system",
                event_hash=context.event_hash,
                evidence=body.evidence,
                rewire_edges=body.strategy.rewire_edges,
                move_claims=body.strategy.move_claims,
            ),
        )
        return {"status": "processed", **result.as_dict()}


class ClaimHandler:
    """ADD_CLAIM / EDIT_CLAIM: set an entity property and record the claim behind it."""

    def __init__(
        self,
        unit_of_work_factory: GraphUnitOfWorkFactory,
        *,
        kind: str = "add_claim",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._kind = kind
        self._clock = clock

    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]:
        body = parse_body(ClaimBody, event.body)
        entity_type = parse_entity_type(body.node.type)
        now = self._clock()

        with self._uow_factory() as uow:
            graph = uow.repositories.graph
            entity_id = resolve_to_canonical(graph, body.node.id)
            entity = graph.get_entity(entity_id)
            if entity is None or entity.entity_type is not entity_type:
                raise TypeMismatchError(f"{body.node.id} is not a {entity_type}")
            graph.set_entity_properties(
                entity_id, {body.field: body.value}, updated_by=context.author, updated_at=now
            )
            claim = ClaimRecord(
                claim_id=claim_id_for(context.event_hash, self._kind, 0),
                entity_id=entity_id,
                property=body.field,
                value=body.value,
                confidence=body.confidence,
                created_at=now,
                created_by=context.author,
                event_hash=context.event_hash,
            )
            created = graph.add_claim(claim)
            uow.commit()

        log.info("Recorded %s %s on %s", self._kind, body.field, entity_id)
        return {
            "status": "processed",
            "entity_id": entity_id,
            "claim_id": claim.claim_id,
            "created": created,
        }


class DeferredHandler:
    """Acknowledge events whose effects live outside the graph (votes, likes, finalization)."""

    def __init__(self, event_type: EventType) -> None:
        self._event_type = event_type

    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]:
        target = event.body.get("target_hash") or event.body.get("node_id")
        log.info("%s on %s acknowledged without graph changes", self._event_type, target)
        return {"status": "deferred", "event_type": str(self._event_type), "target": target}


def build_default_handlers(
    unit_of_work_factory: GraphUnitOfWorkFactory,
    merge_engine: MergeEngine,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> dict[EventType, EventHandler]:
    return {
        EventType.CREATE_RELEASE_BUNDLE: ReleaseBundleHandler(unit_of_work_factory, clock=clock),
        EventType.MINT_ENTITY: MintEntityHandler(unit_of_work_factory, clock=clock),
        EventType.RESOLVE_ID: ResolveIdHandler(unit_of_work_factory, clock=clock),
        EventType.MERGE_ENTITY: MergeEntityHandler(merge_engine),
        EventType.ADD_CLAIM: ClaimHandler(unit_of_work_factory, kind="add_claim", clock=clock),
        EventType.EDIT_CLAIM: ClaimHandler(unit_of_work_factory, kind="edit_claim", clock=clock),
        EventType.VOTE: DeferredHandler(EventType.VOTE),
        EventType.LIKE: DeferredHandler(EventType.LIKE),
        EventType.FINALIZE: DeferredHandler(EventType.FINALIZE),
    }
