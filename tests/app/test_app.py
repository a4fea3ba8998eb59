from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from polaris.app import (
    build_identity_accessors,
    build_ingestion_pipeline,
    build_merge_engine,
    ingest_file,
    load_anchored_events,
    merge_entities,
    mint_canonical_entity,
    resolve_identifier,
)
from polaris.domain.errors import NotFoundError
from polaris.domain.identity import mint
from polaris.domain.model import EntityStatus, EntityType, IngestStatus
from tests.helpers.registry import InMemoryEventStore, make_anchored, put_payload

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from polaris.adapters.sqlalchemy.unit_of_work import SqlAlchemyGraphUnitOfWork

    UowFactory = Callable[[], SqlAlchemyGraphUnitOfWork]


def _mint_event(canonical_id: str, *, ts: int) -> dict[str, object]:
    return make_anchored(
        put_payload(22, {"entity_type": "person", "canonical_id": canonical_id}, ts=ts)
    )


def test_load_anchored_events_reads_json_array(tmp_path: Path) -> None:
    events = [_mint_event(mint(EntityType.PERSON), ts=ts) for ts in (1, 2)]
    path = tmp_path / "events.json"
    path.write_text(json.dumps(events, indent=2), encoding="utf-8")

    assert list(load_anchored_events(path)) == events


def test_load_anchored_events_reads_json_lines(tmp_path: Path) -> None:
    events = [_mint_event(mint(EntityType.PERSON), ts=ts) for ts in (1, 2)]
    path = tmp_path / "events.jsonl"
    path.write_text(
        "\n".join(json.dumps(event) for event in events) + "\n\n", encoding="utf-8"
    )

    assert list(load_anchored_events(path)) == events


def test_load_anchored_events_rejects_non_objects(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError, match="Entry 0"):
        list(load_anchored_events(path))


def test_ingest_file_runs_every_event(
    tmp_path: Path, sqlite_unit_of_work: UowFactory
) -> None:
    first = _mint_event(mint(EntityType.PERSON), ts=1)
    second = _mint_event(mint(EntityType.PERSON), ts=2)
    path = tmp_path / "events.jsonl"
    path.write_text(
        "\n".join(json.dumps(event) for event in (first, second, first)), encoding="utf-8"
    )
    pipeline = build_ingestion_pipeline(
        unit_of_work_factory=sqlite_unit_of_work, event_store=InMemoryEventStore()
    )

    results = ingest_file(path, pipeline=pipeline)

    assert [result.status for result in results] == [
        IngestStatus.PROCESSED,
        IngestStatus.PROCESSED,
        IngestStatus.DUPLICATE,
    ]
    assert pipeline.stats.processed == 2
    assert pipeline.stats.duplicates == 1


def test_operator_entry_points(sqlite_unit_of_work: UowFactory) -> None:
    survivor = mint_canonical_entity("group", unit_of_work_factory=sqlite_unit_of_work)
    absorbed = mint_canonical_entity(EntityType.GROUP, unit_of_work_factory=sqlite_unit_of_work)
    accessors = build_identity_accessors(unit_of_work_factory=sqlite_unit_of_work)
    accessors.create_alias("prov:group:can", absorbed.entity_id)

    result = merge_entities(
        survivor.entity_id,
        [absorbed.entity_id],
        submitter="curator",
        evidence="same band",
        merge_engine=build_merge_engine(unit_of_work_factory=sqlite_unit_of_work),
    )

    assert survivor.created
    assert result.tombstones_created == 1
    assert resolve_identifier("prov:group:can", accessors=accessors) == survivor.entity_id
    with sqlite_unit_of_work() as uow:
        tombstone = uow.repositories.graph.get_entity(absorbed.entity_id)
    assert tombstone is not None
    assert tombstone.status is EntityStatus.MERGED
    assert tombstone.merged_by == "curator"


def test_mint_canonical_entity_is_idempotent(sqlite_unit_of_work: UowFactory) -> None:
    canonical_id = mint(EntityType.LABEL)

    first = mint_canonical_entity(
        "label", canonical_id=canonical_id, unit_of_work_factory=sqlite_unit_of_work
    )
    second = mint_canonical_entity(
        "label", canonical_id=canonical_id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert (first.created, second.created) == (True, False)
    assert first.entity_id == second.entity_id == canonical_id


def test_resolve_identifier_unknown(sqlite_unit_of_work: UowFactory) -> None:
    accessors = build_identity_accessors(unit_of_work_factory=sqlite_unit_of_work)

    with pytest.raises(NotFoundError):
        resolve_identifier("prov:group:nobody", accessors=accessors)
