"""Builders and in-memory fakes for registry tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from polaris.domain.errors import NotFoundError
from polaris.domain.identity import mint_entity
from polaris.domain.ingest_pipeline import compute_event_hash, reconstruct_event
from polaris.domain.ingest_pipeline.schema import AnchoredEvent

if TYPE_CHECKING:
    from collections.abc import Mapping

    from polaris.domain.model import EntityType, StoredEvent
    from polaris.domain.ports import GraphUnitOfWorkFactory


class FixedClock:
    """Clock returning a fixed instant, advanced explicitly by tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def put_payload(
    type_code: int,
    body: Mapping[str, Any],
    *,
    author: str = "PUB_K1_author",
    ts: int = 1_700_000_000,
) -> dict[str, Any]:
    return {"type": type_code, "author": author, "ts": ts, "body": dict(body)}


def make_anchored(
    payload: Mapping[str, Any],
    *,
    action_name: str = "put",
    content_hash: str | None = None,
    block_num: int = 1,
    **extra: Any,
) -> dict[str, Any]:
    """Anchored event for ``payload`` whose content hash matches the rebuilt event."""

    anchored: dict[str, Any] = {
        "payload": json.dumps(payload),
        "action_name": action_name,
        "block_num": block_num,
        "block_id": f"block-{block_num}",
        "trx_id": f"trx-{block_num}",
        "action_ordinal": 0,
        "timestamp": 1_700_000_000,
        "source": "substreams",
        **extra,
    }
    if content_hash is None:
        event = reconstruct_event(payload, AnchoredEvent.model_validate(anchored))
        content_hash = compute_event_hash(event)
    anchored["content_hash"] = content_hash
    return anchored


def mint_in(
    unit_of_work_factory: GraphUnitOfWorkFactory,
    entity_type: EntityType | str,
    **properties: object,
) -> str:
    """Mint a canonical entity and optionally set its properties."""

    with unit_of_work_factory() as uow:
        outcome = mint_entity(uow.repositories.graph, entity_type, created_by="tests")
        if properties:
            uow.repositories.graph.set_entity_properties(
                outcome.entity_id,
                properties,
                updated_by="tests",
                updated_at=datetime.fromisoformat("2025-01-01T00:00:00+00:00"),
            )
        uow.commit()
    return outcome.entity_id


class InMemoryEventStore:
    """Dictionary-backed event store."""

    def __init__(self) -> None:
        self.events: dict[str, StoredEvent] = {}
        self.put_calls = 0

    def put(self, event_hash: str, event: StoredEvent) -> bool:
        self.put_calls += 1
        if event_hash in self.events:
            return False
        self.events[event_hash] = event
        return True

    def get(self, event_hash: str) -> StoredEvent:
        try:
            return self.events[event_hash]
        except KeyError as exc:
            raise NotFoundError(f"Event not found: {event_hash}") from exc

    def exists(self, event_hash: str) -> bool:
        return event_hash in self.events
