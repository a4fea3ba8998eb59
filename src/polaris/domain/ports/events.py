"""Ports for durable event storage and ingest idempotency."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from polaris.domain.model import StoredEvent


@runtime_checkable
class EventStore(Protocol):
    """Durable, content-addressed event storage. Both operations are idempotent."""

    def put(self, event_hash: str, event: StoredEvent) -> bool:
        """Store ``event``; return False when the hash was already present."""
        ...

    def get(self, event_hash: str) -> StoredEvent:
        """Return the stored event or raise ``NotFoundError``."""
        ...

    def exists(self, event_hash: str) -> bool: ...


@runtime_checkable
class IdempotencyStore(Protocol):
    """Fast, non-authoritative record of event hashes already handled."""

    def seen(self, key: str) -> bool: ...

    def remember(self, key: str) -> None: ...
