"""Canonical JSON form and content hash of events.

Keys are sorted at every nesting level, arrays keep their order and no
whitespace is emitted, so any implementation sorting the same way produces the
same hash.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from polaris.domain.model import Event

# detached signature and ingest-time markers are not part of the content
HASH_EXCLUDED_FIELDS: Final[frozenset[str]] = frozenset(
    {"sig", "blockchain_verified", "blockchain_metadata"}
)


def canonical_json(value: object) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def hashable_form(event: Event | Mapping[str, Any]) -> dict[str, Any]:
    document = dict(event) if isinstance(event, Mapping) else event.to_dict()
    return {key: value for key, value in document.items() if key not in HASH_EXCLUDED_FIELDS}


def compute_event_hash(event: Event | Mapping[str, Any]) -> str:
    payload = canonical_json(hashable_form(event)).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
