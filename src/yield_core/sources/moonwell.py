"""Moonwell lending markets via the Ponder GraphQL API.

Three queries (markets, tokens, latest daily snapshots) run concurrently
and are joined in memory on ``(chain_id, address)``. This is the sole
upstream call for the source, so any failure aborts the crawl.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from yield_core.config import PoolConfig
from yield_core.logging import get_logger
from yield_core.models import Snapshot
from yield_core.sources.base import DirectFetchAdapter, SourceFetchError
from yield_core.timeutil import ms_to_dt, utc_now

log = get_logger(__name__)

DEFAULT_PONDER_URL = "https://ponder.moonwell.fi/"
DEFAULT_CHAIN_IDS = [1284, 8453]

CHAIN_NETWORK = {
    1284: "moonbeam",
    8453: "base",
}

MARKETS_QUERY = """{
  markets(limit: 200) {
    items { id address chainId underlyingTokenAddress collateralFactor reserveFactor }
  }
}"""

TOKENS_QUERY = """{
  tokens(limit: 500) {
    items { id address chainId symbol name }
  }
}"""

SNAPSHOTS_QUERY = """{
  marketDailySnapshots(limit: 200, orderBy: "timestamp", orderDirection: "desc") {
    items {
      id chainId marketAddress
      totalSuppliesUSD totalBorrowsUSD totalLiquidityUSD
      baseSupplyApy baseBorrowApy timestamp
    }
  }
}"""


@dataclass
class MoonwellMarket:
    """A market joined with its underlying token and newest daily snapshot."""

    market: dict[str, Any]
    token: dict[str, Any] | None
    latest: dict[str, Any] | None


def network_for_chain(chain_id: int) -> str:
    return CHAIN_NETWORK.get(chain_id, f"chain-{chain_id}")


def _key(chain_id: Any, address: str | None) -> str:
    return f"{chain_id}-{(address or '').lower()}"


def utilization(supplies: float | None, borrows: float | None) -> float | None:
    """Borrows / supplies, undefined when there is nothing supplied."""
    if supplies is None or borrows is None or supplies <= 0:
        return None
    return borrows / supplies


def _pct(fraction: float | None) -> float | None:
    return fraction * 100 if fraction is not None else None


class MoonwellMarketsAdapter(DirectFetchAdapter[MoonwellMarket]):
    source = "moonwell"
    network = "moonbeam"  # default; each snapshot carries its own chain network
    category = "lending"

    def __init__(
        self,
        pool: PoolConfig,
        http: httpx.AsyncClient | None = None,
        timeout_s: float = 20.0,
    ) -> None:
        super().__init__(http=http, timeout_s=timeout_s)
        self.ponder_url = pool.url or DEFAULT_PONDER_URL
        self.chain_ids = list(pool.chain_ids) or list(DEFAULT_CHAIN_IDS)

    async def _gql(self, query: str) -> dict[str, Any]:
        body = await self._post_json(self.ponder_url, {"query": query})
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            raise SourceFetchError(f"GraphQL error: {errors[0].get('message', errors[0])}")
        data = body.get("data") if isinstance(body, dict) else None
        if not data:
            raise SourceFetchError("No data in GraphQL response")
        return data

    async def fetch_raw(self) -> list[MoonwellMarket]:
        markets_data, tokens_data, snapshots_data = await asyncio.gather(
            self._gql(MARKETS_QUERY),
            self._gql(TOKENS_QUERY),
            self._gql(SNAPSHOTS_QUERY),
        )

        markets = [
            m for m in markets_data["markets"]["items"]
            if m.get("chainId") in self.chain_ids
        ]
        log.info("markets_on_target_chains", adapter=self.label, markets=len(markets))

        tokens = {
            _key(t.get("chainId"), t.get("address")): t
            for t in tokens_data["tokens"]["items"]
        }

        latest: dict[str, dict[str, Any]] = {}
        for snap in snapshots_data["marketDailySnapshots"]["items"]:
            if snap.get("chainId") not in self.chain_ids:
                continue
            key = _key(snap["chainId"], snap.get("marketAddress"))
            current = latest.get(key)
            if current is None or (snap.get("timestamp") or 0) > (current.get("timestamp") or 0):
                latest[key] = snap

        return [
            MoonwellMarket(
                market=m,
                token=tokens.get(_key(m["chainId"], m.get("underlyingTokenAddress"))),
                latest=latest.get(_key(m["chainId"], m.get("address"))),
            )
            for m in markets
        ]

    def normalize(self, raw: MoonwellMarket) -> Snapshot:
        market, token, snap = raw.market, raw.token, raw.latest
        chain_id = market["chainId"]
        underlying = market.get("underlyingTokenAddress") or ""
        symbol = token.get("symbol") if token else None
        now = utc_now()

        supplies = snap.get("totalSuppliesUSD") if snap else None
        borrows = snap.get("totalBorrowsUSD") if snap else None
        timestamp = snap.get("timestamp") if snap else None
        supply_rate = _pct(snap.get("baseSupplyApy")) if snap else None

        return Snapshot(
            source=self.source,
            network=network_for_chain(chain_id),
            category=self.category,
            asset_symbol=symbol or f"unknown-{underlying[:8]}",
            # Ponder reports fractions: 0.05 == 5%
            supply_rate=supply_rate,
            borrow_rate=_pct(snap.get("baseBorrowApy")) if snap else None,
            # What a depositor earns.
            total_rate=supply_rate,
            total_value_locked_usd=snap.get("totalLiquidityUSD") if snap else None,
            utilization_ratio=utilization(supplies, borrows),
            observed_at=ms_to_dt(timestamp * 1000) if timestamp else now,
            captured_at=now,
            extra={
                "market_address": market.get("address"),
                "underlying_token_address": underlying,
                "chain_id": chain_id,
                "collateral_factor": market.get("collateralFactor"),
                "reserve_factor": market.get("reserveFactor"),
                "total_supplies_usd": supplies,
                "total_borrows_usd": borrows,
                "snapshot_timestamp": timestamp,
                "token_name": token.get("name") if token else None,
            },
        )
