"""Ingestion of ledger-anchored events."""

from __future__ import annotations

from polaris.domain.ingest_pipeline.handlers import (
    ClaimHandler,
    DeferredHandler,
    MergeEntityHandler,
    MintEntityHandler,
    ResolveIdHandler,
    build_default_handlers,
)
from polaris.domain.ingest_pipeline.hashing import canonical_json, compute_event_hash
from polaris.domain.ingest_pipeline.idempotency import (
    InMemoryIdempotencyCache,
    build_idempotency_cache,
)
from polaris.domain.ingest_pipeline.pipeline import (
    HashMismatch,
    IngestionPipeline,
    IngestResult,
    IngestStats,
)
from polaris.domain.ingest_pipeline.reconstruct import (
    decode_payload,
    event_type_for,
    reconstruct_event,
)
from polaris.domain.ingest_pipeline.schema import AnchoredEvent

__all__ = [
    "AnchoredEvent",
    "ClaimHandler",
    "DeferredHandler",
    "HashMismatch",
    "InMemoryIdempotencyCache",
    "IngestResult",
    "IngestStats",
    "IngestionPipeline",
    "MergeEntityHandler",
    "MintEntityHandler",
    "ResolveIdHandler",
    "build_default_handlers",
    "build_idempotency_cache",
    "canonical_json",
    "compute_event_hash",
    "decode_payload",
    "event_type_for",
    "reconstruct_event",
]
