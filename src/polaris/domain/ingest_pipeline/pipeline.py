"""Idempotent ingestion of ledger-anchored events.

Per event: RECEIVED -> DUPLICATE, or VALIDATED -> STORED -> DISPATCHED ->
PROCESSED | SKIPPED | FAILED.

The durable event store decides what counts as a duplicate. The optional
idempotency store only short-circuits repeated deliveries cheaply.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from polaris.domain.errors import PolarisError, ValidationError
from polaris.domain.ingest_pipeline.hashing import compute_event_hash
from polaris.domain.ingest_pipeline.reconstruct import decode_payload, reconstruct_event
from polaris.domain.ingest_pipeline.schema import parse_anchored_event
from polaris.domain.model import EventType, IngestStatus, StoredEvent
from polaris.domain.ports import HandlerContext

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from polaris.domain.ingest_pipeline.schema import AnchoredEvent
    from polaris.domain.ports import EventHandler, EventStore, IdempotencyStore


log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class IngestResult:
    status: IngestStatus
    event_hash: str
    event_type: str | None = None
    processing_result: Mapping[str, object] | None = None
    error: Mapping[str, str] | None = None

    def as_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": str(self.status), "event_hash": self.event_hash}
        if self.event_type is not None:
            result["event_type"] = self.event_type
        if self.processing_result is not None:
            result["processing_result"] = dict(self.processing_result)
        if self.error is not None:
            result["error"] = dict(self.error)
        return result


@dataclass(slots=True, frozen=True, kw_only=True)
class HashMismatch:
    """Recomputed hash disagreed with the ledger-supplied one."""

    provided: str
    computed: str
    event_type: str


@dataclass(slots=True)
class IngestStats:
    processed: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0
    hash_mismatches: int = 0
    by_type: Counter[str] = field(default_factory=Counter[str])

    def as_dict(self) -> dict[str, object]:
        return {
            "processed": self.processed,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "failed": self.failed,
            "hash_mismatches": self.hash_mismatches,
            "by_type": dict(self.by_type),
        }


class IngestionPipeline:
    """Single entry point for anchored events coming from the ledger sink."""

    def __init__(
        self,
        event_store: EventStore,
        handlers: Mapping[EventType, EventHandler],
        *,
        idempotency: IdempotencyStore | None = None,
        logger: logging.Logger | None = None,
        on_hash_mismatch: Callable[[HashMismatch], None] | None = None,
    ) -> None:
        self._event_store = event_store
        self._handlers = dict(handlers)
        self._idempotency = idempotency
        self._log = logger or log
        self._on_hash_mismatch = on_hash_mismatch
        self.stats = IngestStats()

    def ingest(self, anchored_event: AnchoredEvent | Mapping[str, Any]) -> IngestResult:
        anchored = parse_anchored_event(anchored_event)
        if not anchored.content_hash or not anchored.payload:
            raise ValidationError("Missing required fields: content_hash and payload are required")
        event_hash = anchored.content_hash

        if self._already_ingested(event_hash):
            self.stats.duplicates += 1
            self._log.debug("Event %s already ingested", event_hash)
            return IngestResult(status=IngestStatus.DUPLICATE, event_hash=event_hash)

        payload = decode_payload(anchored.payload)
        event = reconstruct_event(payload, anchored)

        computed = compute_event_hash(event)
        if computed != event_hash:
            self._report_hash_mismatch(
                HashMismatch(provided=event_hash, computed=computed, event_type=event.type)
            )

        stored = StoredEvent(
            event_hash=event_hash,
            event=event,
            blockchain_verified=True,
            blockchain_metadata=anchored.blockchain_metadata(),
        )
        if not self._event_store.put(event_hash, stored):
            # another delivery stored it between the existence check and now
            self.stats.duplicates += 1
            self._remember(event_hash)
            return IngestResult(status=IngestStatus.DUPLICATE, event_hash=event_hash)

        result = self._dispatch(stored)
        self._remember(event_hash)
        return result

    def _already_ingested(self, event_hash: str) -> bool:
        if self._idempotency is not None and self._idempotency.seen(event_hash):
            return True
        if self._event_store.exists(event_hash):
            self._remember(event_hash)
            return True
        return False

    def _remember(self, event_hash: str) -> None:
        if self._idempotency is not None:
            self._idempotency.remember(event_hash)

    def _report_hash_mismatch(self, mismatch: HashMismatch) -> None:
        self.stats.hash_mismatches += 1
        self._log.warning(
            "Event hash mismatch: provided %s, computed %s. Using provided hash.",
            mismatch.provided,
            mismatch.computed,
        )
        if self._on_hash_mismatch is not None:
            self._on_hash_mismatch(mismatch)

    def _dispatch(self, stored: StoredEvent) -> IngestResult:
        event = stored.event
        event_hash = stored.event_hash
        self.stats.by_type[event.type] += 1

        try:
            handler = self._handlers.get(EventType(event.type))
        except ValueError:
            handler = None
        if handler is None:
            self.stats.skipped += 1
            self._log.warning("No handler for event type %s (%s)", event.type, event_hash)
            return IngestResult(
                status=IngestStatus.SKIPPED,
                event_hash=event_hash,
                event_type=event.type,
                processing_result={"reason": f"Unknown event type: {event.type}"},
            )

        context = HandlerContext(
            event_hash=event_hash,
            author=event.author_pubkey,
            blockchain_metadata=stored.blockchain_metadata,
        )
        try:
            outcome = handler(event, context)
        except PolarisError as exc:
            self.stats.failed += 1
            self._log.warning("%s event %s failed: %s", event.type, event_hash, exc.message)
            return IngestResult(
                status=IngestStatus.FAILED,
                event_hash=event_hash,
                event_type=event.type,
                error=exc.to_dict(),
            )
        except Exception:
            self.stats.failed += 1
            self._log.exception("Unexpected error handling %s event %s", event.type, event_hash)
            return IngestResult(
                status=IngestStatus.FAILED,
                event_hash=event_hash,
                event_type=event.type,
                error={
                    "kind": "internal_error",
                    "message": "Unexpected error while handling event",
                },
            )

        self.stats.processed += 1
        self._log.info("Processed %s event %s", event.type, event_hash)
        return IngestResult(
            status=IngestStatus.PROCESSED,
            event_hash=event_hash,
            event_type=event.type,
            processing_result=outcome,
        )
