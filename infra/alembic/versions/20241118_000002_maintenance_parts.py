"""Spare parts stock per site."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20241118_000002"
down_revision = "20241104_000001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "maintenance_parts",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("site_id", sa.Text(), nullable=False),
        sa.Column("part_name", sa.Text(), nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=False),
        sa.Column("quantity_reserved", sa.Integer(), nullable=False),
        sa.Column("document", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("quantity_available >= 0", name="ck_maintenance_parts_available"),
        sa.CheckConstraint("quantity_reserved >= 0", name="ck_maintenance_parts_reserved"),
    )
    op.create_index(
        "ix_maintenance_parts_site_id",
        "maintenance_parts",
        ["site_id", "part_name"],
    )


def downgrade() -> None:
    op.drop_index("ix_maintenance_parts_site_id", table_name="maintenance_parts")
    op.drop_table("maintenance_parts")
