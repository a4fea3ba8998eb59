"""Durable event store on a dedicated SQLAlchemy table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError

from polaris.adapters.sqlalchemy.mappings import event_table
from polaris.domain.errors import NotFoundError
from polaris.domain.model import StoredEvent, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session, sessionmaker

log = logging.getLogger(__name__)


class SqlAlchemyEventStore:
    """Content-addressed event storage.

    Every call runs in its own short transaction so a stored event survives a
    handler failure that rolls back the graph changes.
    """

    def __init__(self, session_factory: sessionmaker[Session] | Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def put(self, event_hash: str, event: StoredEvent) -> bool:
        session = self._session_factory()
        try:
            if self._exists(session, event_hash):
                return False
            session.execute(
                insert(event_table).values(
                    hash=event_hash,
                    event_type=event.event.type,
                    document=event.to_document(),
                    blockchain_verified=event.blockchain_verified,
                    stored_at=utcnow(),
                )
            )
            session.commit()
        except IntegrityError:
            # a concurrent writer stored the same hash first
            session.rollback()
            log.debug("Event %s stored concurrently", event_hash)
            return False
        finally:
            session.close()
        log.debug("Stored %s event %s", event.event.type, event_hash)
        return True

    def get(self, event_hash: str) -> StoredEvent:
        session = self._session_factory()
        try:
            row = session.execute(
                select(event_table.c.document).where(event_table.c.hash == event_hash)
            ).first()
        finally:
            session.close()
        if row is None:
            raise NotFoundError(f"Event not found: {event_hash}")
        document: dict[str, Any] = row[0]
        return StoredEvent.from_document(event_hash, document)

    def exists(self, event_hash: str) -> bool:
        session = self._session_factory()
        try:
            return self._exists(session, event_hash)
        finally:
            session.close()

    @staticmethod
    def _exists(session: Session, event_hash: str) -> bool:
        stmt = select(event_table.c.hash).where(event_table.c.hash == event_hash).limit(1)
        return session.execute(stmt).first() is not None
