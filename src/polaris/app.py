"""Application orchestration entry points."""

from __future__ import annotations

import json
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from polaris.adapters.sqlalchemy import SqlAlchemyEventStore, SqlAlchemyGraphStore
from polaris.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyGraphUnitOfWork,
    configured_session_factory,
    is_started,
    startup,
)
from polaris.config import get_ingest_config
from polaris.domain.identity import IdentityAccessors, mint_entity, parse_entity_type
from polaris.domain.ingest_pipeline import (
    IngestionPipeline,
    build_default_handlers,
    build_idempotency_cache,
)
from polaris.domain.merge import MergeEngine, MergeOptions

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from pathlib import Path

    from polaris.domain.identity import MintOutcome
    from polaris.domain.ingest_pipeline import HashMismatch, IngestResult
    from polaris.domain.merge import MergeResult
    from polaris.domain.model import EntityType
    from polaris.domain.ports import EventStore, GraphUnitOfWorkFactory, IdempotencyStore


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_unit_of_work_factory(*, atomic_retarget: bool = True) -> GraphUnitOfWorkFactory:
    _ensure_started()
    graph_factory = partial(SqlAlchemyGraphStore, atomic_retarget=atomic_retarget)
    return partial(SqlAlchemyGraphUnitOfWork, graph_factory=graph_factory)


def build_merge_engine(
    *, unit_of_work_factory: GraphUnitOfWorkFactory | None = None
) -> MergeEngine:
    return MergeEngine(unit_of_work_factory or build_unit_of_work_factory())


def build_identity_accessors(
    *, unit_of_work_factory: GraphUnitOfWorkFactory | None = None
) -> IdentityAccessors:
    return IdentityAccessors(unit_of_work_factory or build_unit_of_work_factory())


def build_ingestion_pipeline(
    *,
    unit_of_work_factory: GraphUnitOfWorkFactory | None = None,
    event_store: EventStore | None = None,
    idempotency: IdempotencyStore | None = None,
    on_hash_mismatch: Callable[[HashMismatch], None] | None = None,
) -> IngestionPipeline:
    """Wire the ingestion pipeline to the configured database."""

    uow_factory = unit_of_work_factory or build_unit_of_work_factory()
    store = event_store or SqlAlchemyEventStore(configured_session_factory())
    cache = idempotency
    if cache is None:
        cache = build_idempotency_cache(get_ingest_config().dedupe_cache_size)
    handlers = build_default_handlers(uow_factory, MergeEngine(uow_factory))
    return IngestionPipeline(
        store,
        handlers,
        idempotency=cache,
        on_hash_mismatch=on_hash_mismatch,
    )


def load_anchored_events(path: Path) -> Iterator[dict[str, Any]]:
    """Yield anchored events from a JSON array or a JSON-lines file."""

    text = path.read_text(encoding="utf-8")
    stripped = text.lstrip()
    if stripped.startswith("["):
        documents = cast(list[object], json.loads(stripped))
    else:
        documents = [json.loads(line) for line in text.splitlines() if line.strip()]
    for index, document in enumerate(documents):
        if not isinstance(document, dict):
            raise ValueError(f"Entry {index} in {path} is not a JSON object")
        yield cast(dict[str, Any], document)


def ingest_events(
    events: Iterable[dict[str, Any]], *, pipeline: IngestionPipeline | None = None
) -> list[IngestResult]:
    effective = pipeline or build_ingestion_pipeline()
    results = [effective.ingest(event) for event in events]
    log.info("Finished ingest: %s", effective.stats.as_dict())
    return results


def ingest_file(path: Path, *, pipeline: IngestionPipeline | None = None) -> list[IngestResult]:
    log.info("Ingesting anchored events from %s", path)
    return ingest_events(load_anchored_events(path), pipeline=pipeline)


def mint_canonical_entity(
    entity_type: EntityType | str,
    *,
    canonical_id: str | None = None,
    created_by: str = "system",
    unit_of_work_factory: GraphUnitOfWorkFactory | None = None,
) -> MintOutcome:
    """Mint a canonical entity outside the event stream (operator tooling)."""

    uow_factory = unit_of_work_factory or build_unit_of_work_factory()
    with uow_factory() as uow:
        outcome = mint_entity(
            uow.repositories.graph,
            parse_entity_type(entity_type),
            canonical_id=canonical_id,
            created_by=created_by,
        )
        uow.commit()
    return outcome


def merge_entities(
    survivor_id: str,
    absorbed_ids: Iterable[str],
    *,
    submitter: str = "system",
    evidence: str = "",
    merge_engine: MergeEngine | None = None,
) -> MergeResult:
    engine = merge_engine or build_merge_engine()
    return engine.merge(
        survivor_id, absorbed_ids, MergeOptions(submitter=submitter, evidence=evidence)
    )


def resolve_identifier(
    identifier: str, *, accessors: IdentityAccessors | None = None
) -> str:
    return (accessors or build_identity_accessors()).resolve_to_canonical(identifier)
