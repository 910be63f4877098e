"""message counters and referrals

Revision ID: 20250601_01
Revises:
Create Date: 2025-06-01 10:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20250601_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_message_counters",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("message_count >= 0", name="ck_user_message_counters_non_negative"),
    )

    op.create_table(
        "user_referrals",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("referrer_id", sa.String(length=64), nullable=False),
        sa.Column("referee_email", sa.String(length=320)),
        sa.Column("referral_code", sa.String(length=16), nullable=False, unique=True),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_referrals_referrer_id", "user_referrals", ["referrer_id"])


def downgrade() -> None:
    op.drop_index("ix_user_referrals_referrer_id", table_name="user_referrals")
    op.drop_table("user_referrals")
    op.drop_table("user_message_counters")
