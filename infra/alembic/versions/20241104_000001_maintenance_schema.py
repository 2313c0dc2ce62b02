"""Maintenance tickets, schedules and audit history."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20241104_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "counters",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("last_ticket_number", sa.Integer(), nullable=False),
    )

    op.create_table(
        "maintenance_tickets",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("asset_type", sa.Text(), nullable=False),
        sa.Column("asset_id", sa.Text(), nullable=False),
        sa.Column("site_id", sa.Text(), nullable=False),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_maintenance_tickets_site_id",
        "maintenance_tickets",
        ["site_id", sa.text("created_at DESC")],
    )
    op.create_index(
        "ix_maintenance_tickets_asset_id",
        "maintenance_tickets",
        ["asset_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "maintenance_schedules",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("asset_id", sa.Text(), nullable=False),
        sa.Column("site_id", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("next_scheduled_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_maintenance_schedules_active",
        "maintenance_schedules",
        ["is_active", "next_scheduled_date"],
    )

    op.create_table(
        "maintenance_audit_events",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column(
            "maintenance_ticket_id",
            sa.Text(),
            sa.ForeignKey("maintenance_tickets.id"),
            nullable=False,
        ),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("seq", sa.BigInteger(), sa.Identity(always=False), nullable=False),
    )
    op.create_index(
        "ix_maintenance_audit_events_ticket",
        "maintenance_audit_events",
        ["maintenance_ticket_id", "created_at"],
    )

    op.create_table(
        "maintenance_comments",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column(
            "maintenance_ticket_id",
            sa.Text(),
            sa.ForeignKey("maintenance_tickets.id"),
            nullable=False,
        ),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "maintenance_attachments",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column(
            "maintenance_ticket_id",
            sa.Text(),
            sa.ForeignKey("maintenance_tickets.id"),
            nullable=False,
        ),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("maintenance_attachments")
    op.drop_table("maintenance_comments")
    op.drop_index("ix_maintenance_audit_events_ticket", table_name="maintenance_audit_events")
    op.drop_table("maintenance_audit_events")
    op.drop_index("ix_maintenance_schedules_active", table_name="maintenance_schedules")
    op.drop_table("maintenance_schedules")
    op.drop_index("ix_maintenance_tickets_asset_id", table_name="maintenance_tickets")
    op.drop_index("ix_maintenance_tickets_site_id", table_name="maintenance_tickets")
    op.drop_table("maintenance_tickets")
    op.drop_table("counters")
