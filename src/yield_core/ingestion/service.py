"""IngestionService — drive one adapter into the day-bucketed snapshot store."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from yield_core.ingestion.activity import ActivitySink, SessionFactory
from yield_core.ingestion.persistence import upsert_snapshot
from yield_core.logging import get_logger
from yield_core.models import ActivityRecord, IngestionOutcome, Snapshot
from yield_core.sources.base import SourceAdapter
from yield_core.timeutil import day_bucket_for, utc_now

log = get_logger(__name__)


def describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class IngestionService:
    """Runs ``adapter.crawl()``, upserts every snapshot, reports one activity record.

    ``run()`` does not raise for crawl, normalize or write failures; they
    come back as a failed :class:`IngestionOutcome`.
    """

    def __init__(
        self,
        adapter: SourceAdapter,
        sessions: SessionFactory,
        activity: ActivitySink,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.adapter = adapter
        self._sessions = sessions
        self._activity = activity
        self._clock = clock

    @property
    def label(self) -> str:
        return f"{self.adapter.source}/{self.adapter.network}/{self.adapter.category}"

    async def run(self) -> IngestionOutcome:
        start = time.monotonic()
        log.info("ingestion_started", adapter=self.label)

        try:
            result = await self.adapter.crawl()
        except Exception as exc:
            outcome = IngestionOutcome(
                source=self.adapter.source,
                network=self.adapter.network,
                category=self.adapter.category,
                success=False,
                duration_ms=int((time.monotonic() - start) * 1000),
                error_message=describe_error(exc),
            )
            log.error("ingestion_failed", adapter=self.label, error=outcome.error_message)
            self._report(outcome)
            return outcome

        written, failed = self._persist(result.data)
        outcome = IngestionOutcome(
            source=result.source,
            network=result.network,
            category=result.category,
            success=True,
            items_found=result.items_found,
            items_written=written,
            items_failed=failed,
            duration_ms=result.duration_ms,
        )
        log.info(
            "ingestion_complete",
            adapter=self.label,
            items=written,
            failed=failed,
            duration_ms=outcome.duration_ms,
        )
        self._report(outcome)
        return outcome

    def _persist(self, snapshots: list[Snapshot]) -> tuple[int, int]:
        """Upsert each snapshot under today's UTC bucket. Returns (written, failed)."""
        if not snapshots:
            return 0, 0

        now = self._clock()
        bucket = day_bucket_for(now)
        written = failed = 0

        with self._sessions() as session:
            for snapshot in snapshots:
                try:
                    upsert_snapshot(session, snapshot, day_bucket=bucket, updated_at=now)
                    written += 1
                except SQLAlchemyError:
                    session.rollback()
                    failed += 1
                    log.exception(
                        "snapshot_upsert_failed",
                        adapter=self.label,
                        asset=snapshot.asset_symbol,
                        network=snapshot.network,
                    )
        return written, failed

    def _report(self, outcome: IngestionOutcome) -> None:
        self._activity.record(ActivityRecord(
            source=outcome.source,
            network=outcome.network,
            category=outcome.category,
            items_found=outcome.items_found if outcome.success else 0,
            duration_ms=outcome.duration_ms,
            success=outcome.success,
            error_message=outcome.error_message,
            occurred_at=self._clock(),
        ))
