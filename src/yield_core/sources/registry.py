"""Build the adapter set from the pool registry in config.yaml."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from yield_core.config import AppConfig, PoolConfig
from yield_core.logging import get_logger
from yield_core.sources.base import SourceAdapter
from yield_core.sources.bifrost import BifrostFarmingAdapter, BifrostVStakingAdapter
from yield_core.sources.hydration import HydrationOmnipoolAdapter
from yield_core.sources.moonwell import MoonwellMarketsAdapter

log = get_logger(__name__)

AdapterFactory = Callable[[PoolConfig, AppConfig, "httpx.AsyncClient | None"], SourceAdapter]

# (source, network, category) as keyed in the pools section -> factory
ADAPTER_FACTORIES: dict[tuple[str, str, str], AdapterFactory] = {
    ("bifrost", "bifrost", "vstaking"): lambda pool, cfg, http: BifrostVStakingAdapter(
        pool, http=http, timeout_s=cfg.http.timeout_s
    ),
    ("bifrost", "bifrost", "farming"): lambda pool, cfg, http: BifrostFarmingAdapter(
        pool, http=http, timeout_s=cfg.http.timeout_s
    ),
    ("moonwell", "moonbeam", "lending"): lambda pool, cfg, http: MoonwellMarketsAdapter(
        pool, http=http, timeout_s=cfg.http.timeout_s
    ),
    ("hydration", "hydration", "dex"): lambda pool, cfg, http: HydrationOmnipoolAdapter(
        pool, options=cfg.browser
    ),
}

KNOWN_SOURCES = sorted({source for source, _, _ in ADAPTER_FACTORIES})


def build_adapters(config: AppConfig, http: httpx.AsyncClient | None = None) -> list[SourceAdapter]:
    """Instantiate every adapter whose pool entry is configured and enabled.

    ``scheduler.enabled_sources``, when set, further restricts the set.
    """
    allowed = config.scheduler.enabled_sources
    adapters: list[SourceAdapter] = []

    for (source, network, category), factory in ADAPTER_FACTORIES.items():
        if allowed is not None and source not in allowed:
            log.info("source_disabled", source=source, network=network, category=category)
            continue
        if not config.has_pool(source, network, category):
            log.info("pool_not_configured", source=source, network=network, category=category)
            continue
        adapters.append(factory(config.pool(source, network, category), config, http))
        log.info("adapter_loaded", source=source, network=network, category=category)

    return adapters
