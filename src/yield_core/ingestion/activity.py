"""Activity sink — one audit record per ingestion run.

The database sink inserts into ``crawl_logs`` and, when configured, also
appends a one-line summary to a plain-text activity file. Neither write
may fail the run it describes: errors are logged and dropped.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from yield_core.db.tables.activity import CrawlLogRow
from yield_core.logging import get_logger
from yield_core.models import ActivityRecord

log = get_logger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


class ActivitySink(Protocol):
    def record(self, record: ActivityRecord) -> None: ...


def format_activity_line(record: ActivityRecord) -> str:
    parts = [
        f"[{record.occurred_at.isoformat()}]",
        "OK" if record.success else "FAIL",
        f"{record.source}/{record.network}/{record.category}",
        f"items={record.items_found}",
        f"duration={record.duration_ms}ms",
    ]
    if record.error_message:
        parts.append(f'error="{record.error_message}"')
    return "  ".join(parts) + "\n"


class ActivityLogFile:
    """Append-only human-readable crawl log."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, record: ActivityRecord) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(format_activity_line(record))
        except OSError as exc:
            log.warning("activity_file_write_failed", path=str(self.path), error=str(exc))


class DatabaseActivitySink:
    def __init__(self, sessions: SessionFactory, log_file: ActivityLogFile | None = None) -> None:
        self._sessions = sessions
        self._log_file = log_file

    def record(self, record: ActivityRecord) -> None:
        with self._sessions() as session:
            try:
                session.add(CrawlLogRow(**record.model_dump()))
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                log.warning("activity_save_failed", source=record.source, error=str(exc))

        if self._log_file is not None:
            self._log_file.append(record)

        log.info(
            "activity_recorded",
            source=record.source,
            network=record.network,
            category=record.category,
            items=record.items_found,
            duration_ms=record.duration_ms,
            success=record.success,
        )
