"""Scheduler — concurrent fan-out of every registered ingestion service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from yield_core.ingestion.service import IngestionService, describe_error
from yield_core.logging import get_logger
from yield_core.models import IngestionOutcome
from yield_core.timeutil import utc_now

log = get_logger(__name__)


@dataclass
class TickSummary:
    started_at: datetime
    finished_at: datetime
    outcomes: list[IngestionOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [o.label for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[str]:
        return [o.label for o in self.outcomes if not o.success]


class Scheduler:
    """Holds the registered services and runs them all on each tick.

    A tick waits for every service to settle. One service raising or
    reporting failure never cancels or delays the others; failed services
    are simply picked up again on the next tick.
    """

    def __init__(self, services: list[IngestionService] | None = None) -> None:
        self._services: list[IngestionService] = list(services or [])

    def register(self, service: IngestionService) -> None:
        self._services.append(service)

    @property
    def services(self) -> list[IngestionService]:
        return list(self._services)

    async def tick(self) -> TickSummary:
        started_at = utc_now()
        log.info("tick_started", services=len(self._services))

        results = await asyncio.gather(
            *(service.run() for service in self._services),
            return_exceptions=True,
        )

        outcomes: list[IngestionOutcome] = []
        for service, result in zip(self._services, results):
            if isinstance(result, BaseException):
                log.error("service_raised", service=service.label, error=describe_error(result))
                result = IngestionOutcome(
                    source=service.adapter.source,
                    network=service.adapter.network,
                    category=service.adapter.category,
                    success=False,
                    error_message=describe_error(result),
                )
            outcomes.append(result)

        summary = TickSummary(started_at=started_at, finished_at=utc_now(), outcomes=outcomes)
        for outcome in outcomes:
            if outcome.success:
                log.info("service_succeeded", service=outcome.label, items=outcome.items_written)
            else:
                log.error("service_failed", service=outcome.label, error=outcome.error_message)
        log.info("tick_complete", succeeded=summary.succeeded, failed=summary.failed)
        return summary


def seconds_until_next_tick(now: datetime, interval_minutes: int) -> float:
    """Seconds until the next wall-clock minute divisible by *interval_minutes*."""
    base = now.replace(second=0, microsecond=0)
    minutes_past = base.minute % interval_minutes
    next_tick = base + timedelta(minutes=interval_minutes - minutes_past)
    return (next_tick - now).total_seconds()


async def run_forever(scheduler: Scheduler, interval_minutes: int) -> None:
    """Sleep to each aligned boundary and tick. Ticks run back to back, never overlapping."""
    while True:
        delay = seconds_until_next_tick(utc_now(), interval_minutes)
        log.debug("next_tick", in_seconds=round(delay, 1))
        await asyncio.sleep(delay)
        try:
            await scheduler.tick()
        except Exception:
            log.exception("tick_error")
