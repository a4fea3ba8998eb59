"""Immutable registry events and their stored form."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, cast

EVENT_VERSION = 1


def _empty_proofs() -> dict[str, object]:
    return {"source_links": []}


@dataclass(frozen=True, slots=True, kw_only=True)
class Event:
    """Append-only event envelope.

    ``type`` stays a plain string: events whose type we do not know are still
    stored and hashed, and only the dispatcher decides they are unsupported.
    """

    type: str
    author_pubkey: str = ""
    created_at: int | str | None = None
    parents: tuple[str, ...] = ()
    body: Mapping[str, Any] = field(default_factory=dict[str, Any])
    proofs: Mapping[str, Any] = field(default_factory=_empty_proofs)
    sig: str = ""
    v: int = EVENT_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "v": self.v,
            "type": self.type,
            "author_pubkey": self.author_pubkey,
            "created_at": self.created_at,
            "parents": list(self.parents),
            "body": dict(self.body),
            "proofs": dict(self.proofs),
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        parents = cast(list[str], data.get("parents") or [])
        return cls(
            v=int(data.get("v", EVENT_VERSION)),
            type=str(data["type"]),
            author_pubkey=str(data.get("author_pubkey") or ""),
            created_at=data.get("created_at"),
            parents=tuple(parents),
            body=dict(data.get("body") or {}),
            proofs=dict(data.get("proofs") or _empty_proofs()),
            sig=str(data.get("sig") or ""),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class StoredEvent:
    """An event as accepted into the durable store under its authoritative hash."""

    event_hash: str
    event: Event
    blockchain_verified: bool = False
    blockchain_metadata: Mapping[str, Any] = field(default_factory=dict[str, Any])

    def to_document(self) -> dict[str, Any]:
        document = self.event.to_dict()
        document["blockchain_verified"] = self.blockchain_verified
        document["blockchain_metadata"] = dict(self.blockchain_metadata)
        return document

    @classmethod
    def from_document(cls, event_hash: str, document: Mapping[str, Any]) -> StoredEvent:
        return cls(
            event_hash=event_hash,
            event=Event.from_dict(document),
            blockchain_verified=bool(document.get("blockchain_verified", False)),
            blockchain_metadata=dict(document.get("blockchain_metadata") or {}),
        )
