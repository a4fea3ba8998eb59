from __future__ import annotations

import pytest

from polaris.domain.errors import ValidationError
from polaris.domain.ingest_pipeline import decode_payload, event_type_for, reconstruct_event
from polaris.domain.ingest_pipeline.schema import AnchoredEvent


def test_decode_payload_accepts_text_and_bytes() -> None:
    assert decode_payload('{"a": 1}') == {"a": 1}
    assert decode_payload(b'{"a": 1}') == {"a": 1}


@pytest.mark.parametrize("payload", ["not json", "[1, 2]", b"\xff\xfe"])
def test_decode_payload_rejects_malformed_input(payload: str | bytes) -> None:
    with pytest.raises(ValidationError):
        decode_payload(payload)


@pytest.mark.parametrize(
    ("action_name", "payload", "expected"),
    [
        ("put", {}, "CREATE_RELEASE_BUNDLE"),
        ("put", {"type": 22}, "MINT_ENTITY"),
        ("put", {"type": "60"}, "MERGE_ENTITY"),
        ("put", {"type": "resolve_id"}, "RESOLVE_ID"),
        ("put", {"type": 99}, "CREATE_RELEASE_BUNDLE"),
        ("vote", {"type": 22}, "VOTE"),
        ("finalize", {}, "FINALIZE"),
        ("like", {}, "LIKE"),
        ("stake", {}, "STAKE"),
    ],
)
def test_event_type_for(action_name: str, payload: dict[str, object], expected: str) -> None:
    assert event_type_for(action_name, payload) == expected


def test_reconstruct_put_event() -> None:
    anchored = AnchoredEvent(content_hash="h", payload="{}", timestamp=1_600_000_000)
    payload = {
        "type": 22,
        "author": "PUB_K1_author",
        "ts": 1_700_000_000,
        "parent": "p" * 64,
        "body": {"entity_type": "person"},
    }

    event = reconstruct_event(payload, anchored)

    assert event.type == "MINT_ENTITY"
    assert event.author_pubkey == "PUB_K1_author"
    assert event.created_at == 1_700_000_000
    assert event.parents == ("p" * 64,)
    assert event.body == {"entity_type": "person"}
    assert event.proofs == {"source_links": []}
    assert event.sig == ""


def test_reconstruct_vote_uses_voter_and_ledger_time() -> None:
    anchored = AnchoredEvent(
        content_hash="h", payload="{}", action_name="vote", timestamp=1_600_000_000
    )

    event = reconstruct_event({"voter": "alice", "target_hash": "t", "val": 1}, anchored)

    assert event.type == "VOTE"
    assert event.author_pubkey == "alice"
    assert event.created_at == 1_600_000_000
    assert event.body == {"voter": "alice", "target_hash": "t", "val": 1}
