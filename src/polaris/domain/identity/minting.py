"""Creation of canonical entities and their initial claims."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from polaris.domain.errors import InvalidArgumentError
from polaris.domain.identity.aliases import follow_merges
from polaris.domain.identity.grammar import classify, is_canonical, mint, parse_entity_type
from polaris.domain.model import ClaimRecord, EntityRecord, EntityStatus, utcnow

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from polaris.domain.model import EntityType
    from polaris.domain.ports import GraphStore


log = logging.getLogger(__name__)


def claim_id_for(event_hash: str, kind: str, index: int) -> str:
    """Deterministic claim id so replays of one event reuse the same ids."""

    return hashlib.sha256(f"{event_hash}:{kind}:{index}".encode()).hexdigest()


@dataclass(slots=True, frozen=True, kw_only=True)
class InitialClaim:
    property: str
    value: object = None
    confidence: float = 1.0


@dataclass(slots=True, kw_only=True)
class MintOutcome:
    entity_id: str
    created: bool
    claims_added: int = 0
    claim_ids: list[str] = field(default_factory=list[str])


def mint_entity(  # noqa: PLR0913
    graph: GraphStore,
    entity_type: EntityType | str,
    *,
    canonical_id: str | None = None,
    created_by: str | None = None,
    source: str = "manual",
    event_hash: str | None = None,
    initial_claims: Sequence[InitialClaim] = (),
    now: datetime | None = None,
) -> MintOutcome:
    """Create an ACTIVE canonical entity unless ``canonical_id`` already exists.

    ``canonical_id`` must carry the same type tag as ``entity_type``. Initial
    claims get ids derived from ``event_hash`` when one is given. When
    ``canonical_id`` names a tombstone the claims land on its live survivor,
    whose id is returned.
    """

    resolved_type = parse_entity_type(entity_type)
    entity_id = canonical_id or mint(resolved_type)
    if not is_canonical(entity_id):
        raise InvalidArgumentError(f"Invalid canonical id: {entity_id}")
    if classify(entity_id).entity_type is not resolved_type:
        raise InvalidArgumentError(
            f"Canonical id {entity_id} does not carry entity type {resolved_type.value}"
        )

    timestamp = now or utcnow()
    created = graph.add_entity(
        EntityRecord(
            id=entity_id,
            entity_type=resolved_type,
            status=EntityStatus.ACTIVE,
            created_at=timestamp,
            created_by=created_by,
            creation_source=source,
            event_hash=event_hash,
        )
    )

    target_id = entity_id
    if not created:
        existing = graph.get_entity(entity_id, for_update=True)
        if existing is not None and existing.is_tombstone:
            target_id = follow_merges(graph, existing).id

    outcome = MintOutcome(entity_id=target_id, created=created)
    for index, claim in enumerate(initial_claims):
        claim_id = claim_id_for(event_hash, "mint_claim", index) if event_hash else None
        record = ClaimRecord(
            claim_id=claim_id or claim_id_for(entity_id, "mint_claim", index),
            entity_id=target_id,
            property=claim.property,
            value=claim.value,
            confidence=claim.confidence,
            created_at=timestamp,
            created_by=created_by,
            event_hash=event_hash,
        )
        if graph.add_claim(record):
            outcome.claims_added += 1
        outcome.claim_ids.append(record.claim_id)

    log.info(
        "%s %s with %d claims",
        "Minted" if created else "Found existing",
        target_id,
        outcome.claims_added,
    )
    return outcome
