"""Snapshot persistence — day-bucketed upsert and row mapping."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from yield_core.db.tables.snapshots import SNAPSHOT_KEY, SnapshotRow
from yield_core.models import Snapshot
from yield_core.timeutil import as_utc

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"upsert not supported on dialect {dialect!r}") from None


def snapshot_values(snapshot: Snapshot, *, day_bucket: str, updated_at: datetime) -> dict[str, Any]:
    """Column values for a stamped snapshot."""
    return {
        "source": snapshot.source,
        "network": snapshot.network,
        "category": snapshot.category,
        "asset_symbol": snapshot.asset_symbol,
        "day_bucket": day_bucket,
        "supply_rate": snapshot.supply_rate,
        "borrow_rate": snapshot.borrow_rate,
        "reward_rate": snapshot.reward_rate,
        "total_rate": snapshot.total_rate,
        "total_value_locked_usd": snapshot.total_value_locked_usd,
        "utilization_ratio": snapshot.utilization_ratio,
        "extra": snapshot.extra,
        "observed_at": snapshot.observed_at,
        "captured_at": snapshot.captured_at,
        "updated_at": updated_at,
    }


def upsert_snapshot(
    session: Session,
    snapshot: Snapshot,
    *,
    day_bucket: str,
    updated_at: datetime,
) -> None:
    """Insert or replace the row for (network, category, asset_symbol, day_bucket).

    Every non-key column is overwritten, so concurrent writers converge on
    the last write without a read-modify-write.
    """
    insert = _insert_for(session)
    values = snapshot_values(snapshot, day_bucket=day_bucket, updated_at=updated_at)
    stmt = insert(SnapshotRow).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(SNAPSHOT_KEY),
        set_={key: stmt.excluded[key] for key in values if key not in SNAPSHOT_KEY},
    )
    session.execute(stmt)
    session.commit()


def row_to_snapshot(row: SnapshotRow) -> Snapshot:
    return Snapshot(
        source=row.source,
        network=row.network,
        category=row.category,
        asset_symbol=row.asset_symbol,
        supply_rate=row.supply_rate,
        borrow_rate=row.borrow_rate,
        reward_rate=row.reward_rate,
        total_rate=row.total_rate,
        total_value_locked_usd=row.total_value_locked_usd,
        utilization_ratio=row.utilization_ratio,
        extra=row.extra or {},
        observed_at=as_utc(row.observed_at),
        captured_at=as_utc(row.captured_at),
        day_bucket=row.day_bucket,
        updated_at=as_utc(row.updated_at) if row.updated_at else None,
    )
