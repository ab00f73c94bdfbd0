"""Bifrost adapters — vToken staking and farming APY from the omni API.

Endpoint: ``GET {api_base}/{SYMBOL}`` where the configured token ``vDOT``
maps to symbol ``DOT``. The response carries a ``result`` list of daily
points ``{date (ms), avg, week?, month?, quarter?}`` in percent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from yield_core.config import PoolConfig
from yield_core.logging import get_logger
from yield_core.models import Snapshot
from yield_core.sources.base import DirectFetchAdapter
from yield_core.timeutil import ms_to_dt, utc_now

log = get_logger(__name__)

DEFAULT_API_BASE = "https://dapi.bifrost.io/api/omni"


@dataclass
class OmniToken:
    """History for one configured token, sorted oldest first."""

    token: str
    history: list[dict[str, Any]] = field(default_factory=list)

    @property
    def latest(self) -> dict[str, Any]:
        return self.history[-1]


def omni_symbol(token: str) -> str:
    """vDOT -> DOT. Tokens without the v prefix pass through."""
    return token[1:] if token.startswith("v") else token


def compact_history(history: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "date": point.get("date"),
            "avg_rate": point.get("avg"),
            "week_rate": point.get("week"),
            "month_rate": point.get("month"),
            "quarter_rate": point.get("quarter"),
        }
        for point in history
    ]


class _BifrostOmniAdapter(DirectFetchAdapter[OmniToken]):
    source = "bifrost"
    network = "bifrost"

    def __init__(
        self,
        pool: PoolConfig,
        http: httpx.AsyncClient | None = None,
        timeout_s: float = 20.0,
    ) -> None:
        super().__init__(http=http, timeout_s=timeout_s)
        self.tokens = list(pool.tokens)
        self.api_base = (pool.api_base or DEFAULT_API_BASE).rstrip("/")

    async def _fetch_history(self, token: str) -> list[dict[str, Any]] | None:
        url = f"{self.api_base}/{omni_symbol(token)}"
        log.debug("fetching", adapter=self.label, url=url)
        body = await self._get_json_item(url, item=token)
        if body is None:
            return None

        result = body.get("result") if isinstance(body, dict) else None
        points = [p for p in result or [] if isinstance(p, dict) and p.get("date") is not None]
        if not points:
            log.warning("empty_result", adapter=self.label, item=token)
            return None
        return sorted(points, key=lambda p: p["date"])


class BifrostVStakingAdapter(_BifrostOmniAdapter):
    """Liquid-staking vTokens. Keeps the full history in ``extra``."""

    category = "vstaking"

    async def fetch_raw(self) -> list[OmniToken]:
        results: list[OmniToken] = []
        for token in self.tokens:
            history = await self._fetch_history(token)
            if history is None:
                continue
            results.append(OmniToken(token=token, history=history))
            log.info("token_fetched", adapter=self.label, item=token, points=len(history))
        return results

    def normalize(self, raw: OmniToken) -> Snapshot:
        latest = raw.latest
        return Snapshot(
            source=self.source,
            network=self.network,
            category=self.category,
            asset_symbol=raw.token,
            supply_rate=latest.get("avg"),
            total_rate=latest.get("avg"),
            observed_at=ms_to_dt(latest["date"]),
            captured_at=utc_now(),
            extra={
                "week_rate": latest.get("week"),
                "month_rate": latest.get("month"),
                "quarter_rate": latest.get("quarter"),
                "history": compact_history(raw.history),
            },
        )


class BifrostFarmingAdapter(_BifrostOmniAdapter):
    """Farming APY is volatile: only the latest point drives the rates."""

    category = "farming"

    async def fetch_raw(self) -> list[OmniToken]:
        results: list[OmniToken] = []
        for token in self.tokens:
            history = await self._fetch_history(token)
            if history is None:
                continue
            if not isinstance(history[-1].get("avg"), (int, float)):
                log.warning("no_latest_rate", adapter=self.label, item=token)
                continue
            results.append(OmniToken(token=token, history=history))
            log.info("token_fetched", adapter=self.label, item=token, rate=history[-1]["avg"])
        return results

    def normalize(self, raw: OmniToken) -> Snapshot:
        now = utc_now()
        rate = float(raw.latest["avg"])
        return Snapshot(
            source=self.source,
            network=self.network,
            category=self.category,
            asset_symbol=raw.token,
            supply_rate=rate,
            total_rate=rate,
            observed_at=now,
            captured_at=now,
            extra={"history": compact_history(raw.history)},
        )
