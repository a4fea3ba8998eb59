"""Port for typed event handlers invoked by the ingestion pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from polaris.domain.model import Event


@dataclass(frozen=True, slots=True, kw_only=True)
class HandlerContext:
    """What a handler knows about the event besides its content."""

    event_hash: str
    author: str = ""
    blockchain_metadata: Mapping[str, Any] = field(default_factory=dict[str, Any])


@runtime_checkable
class EventHandler(Protocol):
    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]: ...
