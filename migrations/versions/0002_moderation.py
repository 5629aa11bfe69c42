"""Moderation: user roles and bans, reports, moderation log

Revision ID: 8c4e2d6a1b93
Revises: 3f1a9c2b7d10
Create Date: 2026-09-09 00:00:00.000000

Adds role and is_banned to users (existing accounts become plain users),
the reports table with its one-report-per-user-per-item constraint, and the
append-only moderation_logs table.
"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c4e2d6a1b93"
down_revision: Union[str, None] = "3f1a9c2b7d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users: role and ban state ---
    op.add_column(
        "users",
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
    )
    op.add_column(
        "users",
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    # --- reports table ---
    # The unique constraint spans every status: a dismissed report still
    # blocks a second report of the same item by the same user.
    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reporter_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_reports_reporter_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_type", sa.String(10), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_reports"),
        sa.UniqueConstraint("reporter_id", "item_type", "item_id", name="uq_reports_reporter_item"),
        sa.CheckConstraint("item_type IN ('post', 'comment')", name="ck_reports_item_type"),
        sa.CheckConstraint(
            "status IN ('pending', 'reviewed', 'dismissed')", name="ck_reports_status"
        ),
    )
    op.create_index("ix_reports_item", "reports", ["item_type", "item_id"])
    op.create_index("ix_reports_status", "reports", ["status"])

    # --- moderation_logs table ---
    op.create_table(
        "moderation_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "moderator_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_moderation_logs_moderator_id_users", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_moderation_logs"),
    )
    op.create_index("ix_moderation_logs_moderator_id", "moderation_logs", ["moderator_id"])
    op.create_index("ix_moderation_logs_created_at", "moderation_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("moderation_logs")
    op.drop_table("reports")
    op.drop_column("users", "is_banned")
    op.drop_column("users", "role")
