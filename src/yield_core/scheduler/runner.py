"""Scheduler runner — wire config, adapters and services, then tick on a timer.

Run: python -m yield_core.scheduler [--config config.yaml] [--once]
"""

from __future__ import annotations

import argparse
import asyncio

import httpx

from yield_core.config import AppConfig, load_config
from yield_core.db import init_engine, session_scope
from yield_core.ingestion import ActivityLogFile, DatabaseActivitySink, IngestionService
from yield_core.logging import get_logger, setup_logging
from yield_core.scheduler.tick import Scheduler, run_forever
from yield_core.sources import build_adapters

log = get_logger(__name__)


def build_services(config: AppConfig, http: httpx.AsyncClient | None = None) -> list[IngestionService]:
    """One IngestionService per configured adapter, sharing the activity sink."""
    log_file = ActivityLogFile(config.logging.activity_file) if config.logging.activity_file else None
    sink = DatabaseActivitySink(session_scope, log_file=log_file)
    return [
        IngestionService(adapter, session_scope, sink)
        for adapter in build_adapters(config, http=http)
    ]


async def run(config_path: str | None = None, once: bool = False) -> None:
    cfg = load_config(config_path)
    setup_logging(level=cfg.logging.level, log_format=cfg.logging.format)
    init_engine(cfg.database.url)

    http = httpx.AsyncClient(timeout=cfg.http.timeout_s)
    services = build_services(cfg, http=http)
    if not services:
        log.error("no_sources_configured")
        await http.aclose()
        return

    scheduler = Scheduler(services)
    log.info(
        "scheduler_started",
        services=[s.label for s in services],
        interval_minutes=cfg.scheduler.interval_minutes,
        once=once,
    )

    try:
        if once:
            await scheduler.tick()
        else:
            await run_forever(scheduler, cfg.scheduler.interval_minutes)
    finally:
        for service in services:
            await service.adapter.close()
        await http.aclose()


def cli() -> None:
    parser = argparse.ArgumentParser(description="Yield snapshot scheduler")
    parser.add_argument("--config", default="config.yaml", help="Path to config file")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    args = parser.parse_args()
    asyncio.run(run(args.config, once=args.once))
