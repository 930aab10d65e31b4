"""Create events and entities tables.

Revision ID: 0001_rockets_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

Two tables:
  - events: every inbound telemetry message with its processing status;
    unique per (entity_id, sequence_number)
  - entities: current reduced state per rocket
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_rockets_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_id", "sequence_number", name="uq_events_entity_sequence"),
    )
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_received_at", "events", ["received_at"])

    op.create_table(
        "entities",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(100), nullable=False, server_default=""),
        sa.Column("current_speed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mission", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("explosion_reason", sa.String(255), nullable=True),
        sa.Column("launch_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("last_applied_sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("entities")

    op.drop_index("ix_events_received_at", table_name="events")
    op.drop_index("ix_events_status", table_name="events")
    op.drop_table("events")
