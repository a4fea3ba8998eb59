from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from polaris.domain.errors import NotFoundError
from polaris.domain.model import Event, StoredEvent
from polaris.domain.ports import EventStore

if TYPE_CHECKING:
    from polaris.adapters.sqlalchemy import SqlAlchemyEventStore


def _stored(event_hash: str = "a" * 64) -> StoredEvent:
    return StoredEvent(
        event_hash=event_hash,
        event=Event(
            type="MINT_ENTITY",
            author_pubkey="PUB_K1_author",
            created_at=1_700_000_000,
            parents=("p" * 64,),
            body={"entity_type": "song", "initial_claims": []},
        ),
        blockchain_verified=True,
        blockchain_metadata={"block_num": 12, "trx_id": "trx"},
    )


def test_event_store_satisfies_port(sqlite_event_store: SqlAlchemyEventStore) -> None:
    assert isinstance(sqlite_event_store, EventStore)


def test_put_is_idempotent(sqlite_event_store: SqlAlchemyEventStore) -> None:
    stored = _stored()

    assert sqlite_event_store.put(stored.event_hash, stored)
    assert not sqlite_event_store.put(stored.event_hash, stored)
    assert sqlite_event_store.exists(stored.event_hash)


def test_get_returns_stored_document(sqlite_event_store: SqlAlchemyEventStore) -> None:
    stored = _stored()
    sqlite_event_store.put(stored.event_hash, stored)

    loaded = sqlite_event_store.get(stored.event_hash)

    assert loaded == stored


def test_get_missing_event_raises(sqlite_event_store: SqlAlchemyEventStore) -> None:
    assert not sqlite_event_store.exists("f" * 64)
    with pytest.raises(NotFoundError):
        sqlite_event_store.get("f" * 64)
