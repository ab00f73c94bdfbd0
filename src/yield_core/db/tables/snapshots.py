"""SQLAlchemy ORM model for the day-bucketed snapshot collection."""

from datetime import datetime

from sqlalchemy import BigInteger, Index, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from yield_core.db.base import Base

SCHEMA = "yield_data"

# Upsert key: one row per asset per UTC day.
SNAPSHOT_KEY = ("network", "category", "asset_symbol", "day_bucket")


class SnapshotRow(Base):
    __tablename__ = "snapshots"
    __table_args__ = (
        UniqueConstraint(*SNAPSHOT_KEY, name="uq_snapshots_day_bucket"),
        Index("ix_snapshots_category_asset_observed", "category", "asset_symbol", "observed_at"),
        Index("ix_snapshots_source_network", "source", "network"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    network: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    asset_symbol: Mapped[str] = mapped_column(Text, nullable=False)
    day_bucket: Mapped[str] = mapped_column(Text, nullable=False)
    supply_rate: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    borrow_rate: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    reward_rate: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    total_rate: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    total_value_locked_usd: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    utilization_ratio: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    extra: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
