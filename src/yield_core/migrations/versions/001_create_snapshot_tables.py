"""Create snapshot and crawl log tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "snapshots",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column("network", sa.Text, nullable=False),
        sa.Column("category", sa.Text, nullable=False),
        sa.Column("asset_symbol", sa.Text, nullable=False),
        sa.Column("day_bucket", sa.Text, nullable=False),
        sa.Column("supply_rate", sa.Numeric, nullable=True),
        sa.Column("borrow_rate", sa.Numeric, nullable=True),
        sa.Column("reward_rate", sa.Numeric, nullable=True),
        sa.Column("total_rate", sa.Numeric, nullable=True),
        sa.Column("total_value_locked_usd", sa.Numeric, nullable=True),
        sa.Column("utilization_ratio", sa.Numeric, nullable=True),
        sa.Column("extra", postgresql.JSONB, nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "network", "category", "asset_symbol", "day_bucket",
            name="uq_snapshots_day_bucket",
        ),
        schema="yield_data",
    )
    op.create_index(
        "ix_snapshots_category_asset_observed",
        "snapshots",
        ["category", "asset_symbol", "observed_at"],
        schema="yield_data",
    )
    op.create_index(
        "ix_snapshots_source_network",
        "snapshots",
        ["source", "network"],
        schema="yield_data",
    )

    op.create_table(
        "crawl_logs",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column("network", sa.Text, nullable=False),
        sa.Column("category", sa.Text, nullable=False),
        sa.Column("items_found", sa.Integer, nullable=False),
        sa.Column("duration_ms", sa.Integer, nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        schema="yield_data",
    )
    op.create_index(
        "ix_crawl_logs_occurred_at", "crawl_logs", ["occurred_at"], schema="yield_data"
    )


def downgrade() -> None:
    op.drop_index("ix_crawl_logs_occurred_at", table_name="crawl_logs", schema="yield_data")
    op.drop_table("crawl_logs", schema="yield_data")
    op.drop_index("ix_snapshots_source_network", table_name="snapshots", schema="yield_data")
    op.drop_index("ix_snapshots_category_asset_observed", table_name="snapshots", schema="yield_data")
    op.drop_table("snapshots", schema="yield_data")
