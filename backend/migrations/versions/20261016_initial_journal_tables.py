"""Create settings and entries tables.

Revision ID: 20261016_initial_journal
Revises:
Create Date: 2026-10-16
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20261016_initial_journal"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column(
            "is_public", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("id = 1", name="ck_settings_singleton"),
    )
    op.create_table(
        "entries",
        sa.Column("entry_id", sa.String(length=36), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("image_path", sa.Text(), nullable=False),
        sa.Column(
            "image_mime",
            sa.String(length=128),
            nullable=False,
            server_default="image/jpeg",
        ),
        sa.Column("image_width", sa.Integer(), nullable=True),
        sa.Column("image_height", sa.Integer(), nullable=True),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column(
            "tags",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        sa.Column("raw_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("share_token", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("share_token", name="uq_entries_share_token"),
    )
    op.create_index(
        "ix_entries_created_at",
        "entries",
        [sa.text("created_at DESC")],
    )
    op.create_index("ix_entries_deleted_at", "entries", ["deleted_at"])


def downgrade() -> None:
    op.drop_index("ix_entries_deleted_at", table_name="entries")
    op.drop_index("ix_entries_created_at", table_name="entries")
    op.drop_table("entries")
    op.drop_table("settings")
