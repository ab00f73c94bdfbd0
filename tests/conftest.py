"""Shared test fixtures."""

from contextlib import nullcontext
from datetime import datetime, timezone

import pytest
from sqlalchemy import BigInteger, Integer, JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from yield_core.db.base import Base
import yield_core.db.tables  # noqa: F401
from yield_core.models import CrawlResult, Snapshot


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created.

    Patches JSONB→JSON and BigInteger→Integer and drops the schema for SQLite.
    """
    # One shared connection so threadpool-run endpoints see the same database.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)

    session = Session(engine, expire_on_commit=False)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def sessions(db_session):
    """Session factory handing out the shared test session."""
    return lambda: nullcontext(db_session)


class MemoryActivitySink:
    def __init__(self):
        self.records = []

    def record(self, record):
        self.records.append(record)


@pytest.fixture
def activity():
    return MemoryActivitySink()


def make_snapshot(
    asset="vDOT",
    *,
    source="bifrost",
    network="bifrost",
    category="vstaking",
    total_rate=5.0,
    observed_at=None,
    **fields,
) -> Snapshot:
    observed_at = observed_at or datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
    return Snapshot(
        source=source,
        network=network,
        category=category,
        asset_symbol=asset,
        total_rate=total_rate,
        observed_at=observed_at,
        captured_at=fields.pop("captured_at", observed_at),
        **fields,
    )


class FakeAdapter:
    """Adapter double returning canned snapshots or raising *error*."""

    def __init__(self, snapshots=(), *, source="bifrost", network="bifrost",
                 category="vstaking", error=None):
        self.source = source
        self.network = network
        self.category = category
        self.snapshots = list(snapshots)
        self.error = error
        self.crawls = 0
        self.closed = False

    async def crawl(self):
        self.crawls += 1
        if self.error is not None:
            raise self.error
        return CrawlResult(
            source=self.source,
            network=self.network,
            category=self.category,
            captured_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
            duration_ms=12,
            items_found=len(self.snapshots),
            data=self.snapshots,
        )

    async def close(self):
        self.closed = True
