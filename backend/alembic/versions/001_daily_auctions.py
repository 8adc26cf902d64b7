"""Daily auctions: one row per scheduled auction slot, partitioned by scheduled_date.

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

- (scheduled_date, auction_number) unique: ordinal per day, also the idempotent-initialize guard.
- auction_id unique: public UUID, never reused across days.
- round_config: JSON list of {"round_number", "duration_seconds"} (JSONB on PostgreSQL).
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "daily_auctions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("master_id", sa.String(64), nullable=False),
        sa.Column("auction_number", sa.Integer(), nullable=False),
        sa.Column("auction_id", sa.String(36), nullable=False),
        sa.Column("time_slot", sa.String(5), nullable=False),
        sa.Column("auction_name", sa.String(128), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("prize_value", sa.Integer(), nullable=False),
        sa.Column("max_discount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("entry_fee_type", sa.String(16), nullable=False),
        sa.Column("min_entry_fee", sa.Integer(), nullable=True),
        sa.Column("max_entry_fee", sa.Integer(), nullable=True),
        sa.Column("fee_split_box_a", sa.Integer(), nullable=True),
        sa.Column("fee_split_box_b", sa.Integer(), nullable=True),
        sa.Column("round_count", sa.Integer(), nullable=False),
        sa.Column(
            "round_config",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("auction_id"),
        sa.UniqueConstraint("scheduled_date", "auction_number", name="uq_daily_auctions_date_number"),
    )
    op.create_index("ix_daily_auctions_master_id", "daily_auctions", ["master_id"], unique=False)
    op.create_index("ix_daily_auctions_scheduled_date", "daily_auctions", ["scheduled_date"], unique=False)
    op.create_index("ix_daily_auctions_date_status", "daily_auctions", ["scheduled_date", "status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_daily_auctions_date_status", table_name="daily_auctions")
    op.drop_index("ix_daily_auctions_scheduled_date", table_name="daily_auctions")
    op.drop_index("ix_daily_auctions_master_id", table_name="daily_auctions")
    op.drop_table("daily_auctions")
