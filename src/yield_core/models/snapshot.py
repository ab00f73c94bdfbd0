"""Snapshot model — one normalized fact about one pool asset."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Snapshot(BaseModel):
    """A normalized reading for one (source, network, category, asset).

    Rates are percentage points (5.0 == 5%). ``utilization_ratio`` is a
    0-1 fraction. ``day_bucket`` and ``updated_at`` are stamped by the
    ingestion layer; adapters leave them unset.

    Known ``extra`` keys by source:
        bifrost:   week_rate, month_rate, quarter_rate, history
        moonwell:  market_address, underlying_token_address, chain_id,
                   collateral_factor, reserve_factor, total_supplies_usd,
                   total_borrows_usd, snapshot_timestamp, token_name
        hydration: asset_name, price_usd, volume_24h_usd,
                   fee_and_farm_apr, pool_category, source_url
    """

    source: str
    network: str
    category: str
    asset_symbol: str

    supply_rate: float | None = None
    borrow_rate: float | None = None
    reward_rate: float | None = None
    total_rate: float | None = None
    total_value_locked_usd: float | None = None
    utilization_ratio: float | None = None

    extra: dict[str, Any] = Field(default_factory=dict)

    observed_at: datetime
    captured_at: datetime
    day_bucket: str | None = None
    updated_at: datetime | None = None


class CrawlResult(BaseModel):
    """Output of one SourceAdapter.crawl() call."""

    source: str
    network: str
    category: str
    captured_at: datetime
    duration_ms: int
    items_found: int
    data: list[Snapshot] = Field(default_factory=list)
