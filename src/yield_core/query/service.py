"""QueryService — read side over the snapshot store.

``latest`` dedupes to the newest snapshot per pool, ``history`` returns
every daily point in a time range, and the three ``distinct_*`` listings
are served through a short-lived :class:`TTLCache`. Store errors propagate
to the caller; only the distinct listings have a cached fallback.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from yield_core.db.tables.snapshots import SnapshotRow
from yield_core.ingestion.persistence import row_to_snapshot
from yield_core.models import (
    AssetMeta,
    CategoryMeta,
    HistoryFilter,
    LatestFilter,
    NetworkMeta,
    Snapshot,
    SortField,
)
from yield_core.models.query import _BaseFilter
from yield_core.query.cache import TTLCache
from yield_core.query.labels import category_info, network_label
from yield_core.sources.registry import KNOWN_SOURCES
from yield_core.timeutil import as_utc

META_NETWORKS = "meta:networks"
META_CATEGORIES = "meta:categories"
META_ASSETS = "meta:assets"
META_KEYS = (META_NETWORKS, META_CATEGORIES, META_ASSETS)


def invalidate_meta_cache(cache: TTLCache) -> None:
    for key in META_KEYS:
        cache.invalidate(key)


def latest_key(snapshot: Snapshot) -> tuple[str, str, str, str]:
    return (snapshot.source, snapshot.network, snapshot.category, snapshot.asset_symbol)


def dedupe_latest(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Keep the newest snapshot per pool.

    Sorts by ``observed_at`` (then ``updated_at``) descending and keeps the
    first of each group, so the input order does not matter.
    """
    ordered = sorted(
        snapshots,
        key=lambda s: (s.observed_at, s.updated_at or s.observed_at),
        reverse=True,
    )
    seen: dict[tuple[str, str, str, str], Snapshot] = {}
    for snapshot in ordered:
        seen.setdefault(latest_key(snapshot), snapshot)
    return list(seen.values())


def _sort_value(snapshot: Snapshot, field: SortField) -> float:
    value: Any = getattr(snapshot, field.value)
    if value is None:
        return float("-inf")
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)


def sort_and_limit(snapshots: list[Snapshot], field: SortField, limit: int) -> list[Snapshot]:
    """Descending by *field*, missing values last, truncated to *limit*."""
    ranked = sorted(snapshots, key=lambda s: _sort_value(s, field), reverse=True)
    return ranked[:limit]


class QueryService:
    def __init__(
        self,
        session: Session,
        cache: TTLCache | None = None,
        sources: Iterable[str] = KNOWN_SOURCES,
    ) -> None:
        self.session = session
        self.cache = cache if cache is not None else TTLCache()
        self.sources = set(sources)

    # ── filters ────────────────────────────────────────────────────

    def _conditions(self, flt: _BaseFilter) -> list:
        conditions = []
        # An unrecognised source falls back to every source.
        if flt.source and flt.source in self.sources:
            conditions.append(SnapshotRow.source == flt.source)
        if flt.asset:
            conditions.append(func.lower(SnapshotRow.asset_symbol) == flt.asset.lower())
        if flt.category:
            conditions.append(SnapshotRow.category == flt.category)
        if flt.network:
            conditions.append(SnapshotRow.network == flt.network)
        if flt.min_rate is not None:
            conditions.append(SnapshotRow.total_rate >= flt.min_rate)
        return conditions

    # ── latest / history ───────────────────────────────────────────

    def latest(self, flt: LatestFilter | None = None) -> list[Snapshot]:
        """Newest snapshot per pool, filtered in the store, then sorted and limited.

        The per-pool reduction runs in the store (``row_number`` over the
        pool key), so only one row per pool is loaded regardless of how
        many days of history exist.
        """
        flt = flt or LatestFilter()
        rank = func.row_number().over(
            partition_by=(
                SnapshotRow.source,
                SnapshotRow.network,
                SnapshotRow.category,
                SnapshotRow.asset_symbol,
            ),
            order_by=(
                SnapshotRow.observed_at.desc(),
                SnapshotRow.updated_at.desc(),
                SnapshotRow.id.desc(),
            ),
        ).label("pool_rank")
        ranked = (
            select(SnapshotRow.id, rank)
            .where(*self._conditions(flt))
            .subquery()
        )
        rows = self.session.execute(
            select(SnapshotRow)
            .join(ranked, SnapshotRow.id == ranked.c.id)
            .where(ranked.c.pool_rank == 1)
        ).scalars().all()
        latest = dedupe_latest(row_to_snapshot(r) for r in rows)
        return sort_and_limit(latest, flt.sort_field, flt.limit)

    def top(self, limit: int = 10, sort_field: SortField = SortField.TOTAL_RATE) -> list[Snapshot]:
        return self.latest(LatestFilter(limit=limit, sort_field=sort_field))

    def history(self, flt: HistoryFilter | None = None) -> list[Snapshot]:
        """Every matching daily snapshot with ``from <= observed_at <= to``, oldest first."""
        flt = flt or HistoryFilter()
        conditions = self._conditions(flt)
        if flt.from_time is not None:
            conditions.append(SnapshotRow.observed_at >= as_utc(flt.from_time))
        if flt.to_time is not None:
            conditions.append(SnapshotRow.observed_at <= as_utc(flt.to_time))

        rows = self.session.execute(
            select(SnapshotRow)
            .where(*conditions)
            .order_by(SnapshotRow.observed_at.asc(), SnapshotRow.id.asc())
        ).scalars().all()
        return [row_to_snapshot(r) for r in rows]

    # ── distinct-value listings (cached) ───────────────────────────

    def _cached(self, key: str, compute: Callable[[], list]) -> list:
        value = self.cache.get(key)
        if value is None:
            value = compute()
            self.cache.set(key, value)
        return value

    def invalidate_meta(self) -> None:
        invalidate_meta_cache(self.cache)

    def distinct_networks(self) -> list[NetworkMeta]:
        return self._cached(META_NETWORKS, self._scan_networks)

    def distinct_categories(self) -> list[CategoryMeta]:
        return self._cached(META_CATEGORIES, self._scan_categories)

    def distinct_assets(self) -> list[AssetMeta]:
        return self._cached(META_ASSETS, self._scan_assets)

    def _scan_networks(self) -> list[NetworkMeta]:
        pairs = self.session.execute(
            select(SnapshotRow.network, SnapshotRow.source).distinct()
        ).all()
        grouped: dict[str, set[str]] = defaultdict(set)
        for network, source in pairs:
            grouped[network].add(source)
        return [
            NetworkMeta(network=network, label=network_label(network), sources=sorted(sources))
            for network, sources in sorted(grouped.items())
        ]

    def _scan_categories(self) -> list[CategoryMeta]:
        pairs = self.session.execute(
            select(SnapshotRow.category, SnapshotRow.source).distinct()
        ).all()
        grouped: dict[str, set[str]] = defaultdict(set)
        for category, source in pairs:
            grouped[category].add(source)

        result = []
        for category, sources in sorted(grouped.items()):
            label, classification = category_info(category)
            result.append(CategoryMeta(
                category=category,
                label=label,
                classification=classification,
                sources=sorted(sources),
            ))
        return result

    def _scan_assets(self) -> list[AssetMeta]:
        rows = self.session.execute(
            select(
                SnapshotRow.asset_symbol,
                SnapshotRow.source,
                SnapshotRow.network,
                SnapshotRow.category,
            ).distinct()
        ).all()
        grouped: dict[str, dict[str, set[str]]] = defaultdict(
            lambda: {"sources": set(), "networks": set(), "categories": set()}
        )
        for asset, source, network, category in rows:
            entry = grouped[asset]
            entry["sources"].add(source)
            entry["networks"].add(network)
            entry["categories"].add(category)
        return [
            AssetMeta(
                asset_symbol=asset,
                sources=sorted(entry["sources"]),
                networks=sorted(entry["networks"]),
                categories=sorted(entry["categories"]),
            )
            for asset, entry in sorted(grouped.items())
        ]
