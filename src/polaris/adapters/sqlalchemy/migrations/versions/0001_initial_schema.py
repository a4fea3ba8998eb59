"""Initial registry schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "entity",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=7), nullable=False),
        sa.Column("status", sa.String(length=11), nullable=False),
        sa.Column("properties", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("creation_source", sa.String(), nullable=True),
        sa.Column("event_hash", sa.String(length=64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("absorbed_count", sa.Integer(), nullable=False),
        sa.Column("last_merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_into", sa.String(length=255), nullable=True),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_by", sa.String(), nullable=True),
        sa.Column("merge_event_hash", sa.String(length=64), nullable=True),
        sa.Column("merge_evidence", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_entity"),
    )
    op.create_index("ix_entity_merged_into", "entity", ["merged_into"])

    op.create_table(
        "alias",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("alias_kind", sa.String(length=11), nullable=False),
        sa.Column("resolution_method", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_alias"),
    )

    op.create_table(
        "edge",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("rel_type", sa.String(length=12), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        sa.Column("target_id", sa.String(length=255), nullable=False),
        sa.Column("properties", sa.JSON(), nullable=False),
        sa.Column("edge_key", sa.String(), nullable=True),
        sa.Column("pending_retarget", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_edge"),
        sa.UniqueConstraint("edge_key", name="uq_edge_edge_edge_key"),
    )
    op.create_index("ix_edge_source_id", "edge", ["source_id"])
    op.create_index("ix_edge_target_id", "edge", ["target_id"])
    op.create_index("ix_edge_pending_retarget", "edge", ["pending_retarget"])

    op.create_table(
        "claim",
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("property", sa.String(), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("event_hash", sa.String(length=64), nullable=True),
        sa.Column("merged_from", sa.String(length=255), nullable=True),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_by", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("claim_id", name="pk_claim"),
    )
    op.create_index("ix_claim_entity_id", "claim", ["entity_id"])

    op.create_table(
        "identity_map",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("external_type", sa.String(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("canonical_id", sa.String(length=255), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("evidence", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("key", name="pk_identity_map"),
    )
    op.create_index("ix_identity_map_canonical_id", "identity_map", ["canonical_id"])

    op.create_table(
        "event",
        sa.Column("hash", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("document", sa.JSON(), nullable=False),
        sa.Column("blockchain_verified", sa.Boolean(), nullable=False),
        sa.Column("stored_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("hash", name="pk_event"),
    )
    op.create_index("ix_event_event_type", "event", ["event_type"])


def downgrade() -> None:
    op.drop_index("ix_event_event_type", table_name="event")
    op.drop_table("event")
    op.drop_index("ix_identity_map_canonical_id", table_name="identity_map")
    op.drop_table("identity_map")
    op.drop_index("ix_claim_entity_id", table_name="claim")
    op.drop_table("claim")
    op.drop_index("ix_edge_pending_retarget", table_name="edge")
    op.drop_index("ix_edge_target_id", table_name="edge")
    op.drop_index("ix_edge_source_id", table_name="edge")
    op.drop_table("edge")
    op.drop_table("alias")
    op.drop_index("ix_entity_merged_into", table_name="entity")
    op.drop_table("entity")
