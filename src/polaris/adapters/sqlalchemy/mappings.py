"""SQLAlchemy Core tables backing the registry property graph."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)

from polaris.domain.model import AliasKind, EntityStatus, EntityType, RelationshipType

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

ID_LENGTH = 255


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = mapper_registry.metadata

# Core tables -----------------------------------------------------------------

entity_table = Table(
    "entity",
    metadata,
    Column("id", String(ID_LENGTH), primary_key=True),
    Column("entity_type", Enum(EntityType, native_enum=False), nullable=False),
    Column("status", Enum(EntityStatus, native_enum=False), nullable=False),
    Column("properties", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("created_by", String, nullable=True),
    Column("creation_source", String, nullable=True),
    Column("event_hash", String(64), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("updated_by", String, nullable=True),
    Column("absorbed_count", Integer, nullable=False, default=0),
    Column("last_merged_at", UTCDateTime(), nullable=True),
    Column("merged_into", String(ID_LENGTH), nullable=True, index=True),
    Column("merged_at", UTCDateTime(), nullable=True),
    Column("merged_by", String, nullable=True),
    Column("merge_event_hash", String(64), nullable=True),
    Column("merge_evidence", Text, nullable=True),
)

alias_table = Table(
    "alias",
    metadata,
    Column("id", String(ID_LENGTH), primary_key=True),
    Column("alias_kind", Enum(AliasKind, native_enum=False), nullable=False),
    Column("resolution_method", String, nullable=False),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("created_by", String, nullable=True),
)

edge_table = Table(
    "edge",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("rel_type", Enum(RelationshipType, native_enum=False), nullable=False),
    Column("source_id", String(ID_LENGTH), nullable=False, index=True),
    Column("target_id", String(ID_LENGTH), nullable=False, index=True),
    Column("properties", JSON, nullable=False, default=dict),
    Column("edge_key", String, nullable=True, unique=True),
    Column("pending_retarget", Boolean, nullable=False, default=False),
    Index("ix_edge_pending_retarget", "pending_retarget"),
)

claim_table = Table(
    "claim",
    metadata,
    Column("claim_id", String(64), primary_key=True),
    Column("entity_id", String(ID_LENGTH), nullable=False, index=True),
    Column("property", String, nullable=False),
    Column("value", JSON, nullable=True),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("created_by", String, nullable=True),
    Column("event_hash", String(64), nullable=True),
    Column("merged_from", String(ID_LENGTH), nullable=True),
    Column("merged_at", UTCDateTime(), nullable=True),
    Column("merged_by", String, nullable=True),
)

identity_map_table = Table(
    "identity_map",
    metadata,
    Column("key", String, primary_key=True),
    Column("source", String, nullable=False),
    Column("external_type", String, nullable=False),
    Column("external_id", String, nullable=False),
    Column("canonical_id", String(ID_LENGTH), nullable=False, index=True),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("evidence", Text, nullable=False, default=""),
    Column("created_by", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_by", String, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)

event_table = Table(
    "event",
    metadata,
    Column("hash", String(64), primary_key=True),
    Column("event_type", String, nullable=False, index=True),
    Column("document", JSON, nullable=False),
    Column("blockchain_verified", Boolean, nullable=False, default=False),
    Column("stored_at", UTCDateTime(), nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables without running migrations."""

    log.info("Creating all tables")
    metadata.create_all(engine)
