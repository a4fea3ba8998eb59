"""Rebuild canonical events from raw ledger action payloads."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final, cast

from polaris.domain.errors import ValidationError
from polaris.domain.model import Event, EventType

if TYPE_CHECKING:
    from polaris.domain.ingest_pipeline.schema import AnchoredEvent

ACTION_EVENT_TYPES: Final[dict[str, EventType]] = {
    "put": EventType.CREATE_RELEASE_BUNDLE,
    "vote": EventType.VOTE,
    "finalize": EventType.FINALIZE,
    "like": EventType.LIKE,
}

# numeric codes carried by the ledger ``put`` action
EVENT_TYPE_CODES: Final[dict[int, EventType]] = {
    21: EventType.CREATE_RELEASE_BUNDLE,
    22: EventType.MINT_ENTITY,
    23: EventType.RESOLVE_ID,
    30: EventType.ADD_CLAIM,
    31: EventType.EDIT_CLAIM,
    40: EventType.VOTE,
    41: EventType.LIKE,
    50: EventType.FINALIZE,
    60: EventType.MERGE_ENTITY,
}


def decode_payload(payload: str | bytes) -> dict[str, Any]:
    """Parse a text or UTF-8 byte payload into a JSON object."""

    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        decoded = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Invalid JSON payload: {exc}") from exc
    if not isinstance(decoded, dict):
        raise ValidationError(
            f"Payload must decode to a JSON object, got {type(decoded).__name__}"
        )
    return cast(dict[str, Any], decoded)


def event_type_for(action_name: str, payload: Mapping[str, Any]) -> str:
    """Map an action name (and, for ``put``, its type code) onto an event type.

    Unrecognised action names fall back to the upper-cased name; the
    dispatcher decides whether anything handles it.
    """

    base = ACTION_EVENT_TYPES.get(action_name)
    if base is None:
        return action_name.upper()
    if action_name == "put":
        refined = _type_from_code(payload.get("type"))
        if refined is not None:
            return refined.value
    return base.value


def _type_from_code(code: object) -> EventType | None:
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        return EVENT_TYPE_CODES.get(code)
    if isinstance(code, str):
        stripped = code.strip()
        if stripped.isdigit():
            return EVENT_TYPE_CODES.get(int(stripped))
        try:
            return EventType(stripped.upper())
        except ValueError:
            return None
    return None


def reconstruct_event(payload: Mapping[str, Any], anchored: AnchoredEvent) -> Event:
    action_name = anchored.action_name or "put"
    event_type = event_type_for(action_name, payload)

    if action_name == "put":
        parent = payload.get("parent")
        return Event(
            type=event_type,
            author_pubkey=str(payload.get("author") or ""),
            created_at=payload.get("ts") or anchored.timestamp,
            parents=(str(parent),) if parent else (),
            body=dict(payload.get("body") or {}),
            proofs=dict(payload.get("proofs") or {"source_links": []}),
        )

    return Event(
        type=event_type,
        author_pubkey=str(payload.get("voter") or payload.get("author") or ""),
        created_at=anchored.timestamp,
        body=dict(payload),
    )
