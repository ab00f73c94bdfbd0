"""Hydration omnipool and stablepool table, scraped from the rendered app.

Columns: [0] pool asset (symbol ``<p>`` + optional name ``<p>``),
[1] price, [2] 24h volume, [3] TVL, [4] fee + farm APR.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

from yield_core.config import PoolConfig
from yield_core.config.schema import BrowserConfig
from yield_core.models import Snapshot
from yield_core.sources.rendered import RenderedPageAdapter
from yield_core.timeutil import utc_now

DEFAULT_URL = "https://app.hydration.net/liquidity/omnipool-stablepools"
DEFAULT_STABLE_MARKERS = ["USDT", "USDC", "Pool", "HUSDs", "HUSDe"]

_PERCENT = re.compile(r"([\d.]+)\s*%")
_DOLLAR = re.compile(r"^([\d.]+)([KMB])?$", re.IGNORECASE)
_SUFFIX = {"K": 1e3, "M": 1e6, "B": 1e9}


@dataclass
class HydrationPoolRow:
    asset_symbol: str
    asset_name: str | None = None
    price_usd: float | None = None
    volume_24h_usd: float | None = None
    tvl_usd: float | None = None
    fee_and_farm_apr: float | None = None
    pool_category: str = "omnipool"


def parse_dollar(raw: str | None) -> float | None:
    """``"$1,234.5"`` -> 1234.5, ``"$1.2M"`` -> 1200000.0; anything else is None."""
    if not raw:
        return None
    match = _DOLLAR.match(re.sub(r"[$,\s]", "", raw))
    if not match:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    suffix = match.group(2)
    return value * _SUFFIX[suffix.upper()] if suffix else value


def parse_percent(raw: str | None) -> float | None:
    """First ``N%`` in the text; compound cells like ``"3.1% + 9.5%"`` give 3.1."""
    if not raw:
        return None
    match = _PERCENT.search(raw)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def classify_pool(symbol: str, name: str | None, markers: list[str]) -> str:
    """``stablepool`` if any marker appears in the symbol or name."""
    haystacks = [symbol, name or ""]
    if any(marker in text for marker in markers for text in haystacks):
        return "stablepool"
    return "omnipool"


def _cell_text(cell) -> str | None:
    p = cell.find("p")
    node = p if p is not None else cell
    text = node.get_text(strip=True)
    return text or None


class HydrationOmnipoolAdapter(RenderedPageAdapter[HydrationPoolRow]):
    source = "hydration"
    network = "hydration"
    category = "dex"

    def __init__(self, pool: PoolConfig, options: BrowserConfig | None = None) -> None:
        super().__init__(options=options, page_wait_ms=pool.page_wait_ms)
        self.url = pool.url or DEFAULT_URL
        self.stable_markers = list(pool.stable_markers) or list(DEFAULT_STABLE_MARKERS)

    def extract_rows(self, soup: BeautifulSoup) -> list[HydrationPoolRow]:
        rows: list[HydrationPoolRow] = []
        for tr in soup.select(self.row_selector):
            cells = tr.find_all("td")
            if len(cells) < 4:
                continue

            labels = cells[0].find_all("p")
            symbol = labels[0].get_text(strip=True) if labels else ""
            if not symbol:
                continue
            name = labels[1].get_text(strip=True) if len(labels) > 1 else None

            rows.append(HydrationPoolRow(
                asset_symbol=symbol,
                asset_name=name or None,
                price_usd=parse_dollar(_cell_text(cells[1])),
                volume_24h_usd=parse_dollar(_cell_text(cells[2])),
                tvl_usd=parse_dollar(_cell_text(cells[3])),
                fee_and_farm_apr=parse_percent(cells[4].get_text(" ", strip=True)) if len(cells) > 4 else None,
                pool_category=classify_pool(symbol, name, self.stable_markers),
            ))
        return rows

    def normalize(self, raw: HydrationPoolRow) -> Snapshot:
        now = utc_now()
        return Snapshot(
            source=self.source,
            network=self.network,
            category=self.category,
            asset_symbol=raw.asset_symbol,
            # AMM pools only publish the combined fee + farm APR.
            total_rate=raw.fee_and_farm_apr,
            total_value_locked_usd=raw.tvl_usd,
            observed_at=now,
            captured_at=now,
            extra={
                "asset_name": raw.asset_name,
                "price_usd": raw.price_usd,
                "volume_24h_usd": raw.volume_24h_usd,
                "fee_and_farm_apr": raw.fee_and_farm_apr,
                "pool_category": raw.pool_category,
                "source_url": self.url,
            },
        )
