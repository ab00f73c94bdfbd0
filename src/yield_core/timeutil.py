"""UTC clock and day-bucket helpers shared by adapters and ingestion."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite hands them back naive)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def day_bucket_for(ts: datetime) -> str:
    """UTC calendar-day key, e.g. ``"2026-02-22"``."""
    return as_utc(ts).strftime("%Y-%m-%d")


def ms_to_dt(ms: int | float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
