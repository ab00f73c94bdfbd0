"""Tests for the read side: latest/history queries and cached distinct listings."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy import event

from yield_core.ingestion import upsert_snapshot
from yield_core.models import HistoryFilter, LatestFilter, SortField
from yield_core.query import QueryService, TTLCache, dedupe_latest, sort_and_limit
from yield_core.query.labels import category_info, generic_label, network_label

from conftest import make_snapshot

DAY = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)


def _store(session, snapshot, when=None):
    when = when or snapshot.observed_at
    upsert_snapshot(session, snapshot, day_bucket=when.strftime("%Y-%m-%d"), updated_at=when)


@pytest.fixture
def query_count(db_session):
    """Number of SQL statements executed on the test engine."""
    counter = {"n": 0}

    def _count(*args):
        counter["n"] += 1

    event.listen(db_session.get_bind(), "before_cursor_execute", _count)
    yield counter
    event.remove(db_session.get_bind(), "before_cursor_execute", _count)


@pytest.fixture
def seeded(db_session):
    """Three pools across three sources, each with several daily points."""
    for day in range(3):
        at = DAY + timedelta(days=day)
        _store(db_session, make_snapshot("vDOT", total_rate=14.0 + day, observed_at=at))
        _store(db_session, make_snapshot(
            "GLMR", source="moonwell", network="moonbeam", category="lending",
            total_rate=2.0 + day, supply_rate=2.0 + day, observed_at=at,
        ))
    _store(db_session, make_snapshot(
        "USDC", source="moonwell", network="base", category="lending",
        total_rate=4.5, observed_at=DAY,
    ))
    _store(db_session, make_snapshot(
        "HDX", source="hydration", network="hydration", category="dex",
        total_rate=None, total_value_locked_usd=2_500_000.0, observed_at=DAY,
    ))
    return db_session


class TestDedupeAndSort:
    def test_dedupe_keeps_newest_per_pool(self):
        old = make_snapshot("vDOT", total_rate=1.0, observed_at=DAY)
        new = make_snapshot("vDOT", total_rate=2.0, observed_at=DAY + timedelta(days=1))
        other_chain = make_snapshot("vDOT", network="kusama", observed_at=DAY)

        result = dedupe_latest([old, new, other_chain])

        assert len(result) == 2
        assert new in result
        assert other_chain in result

    def test_dedupe_same_observed_at_prefers_latest_update(self):
        first = make_snapshot("vDOT", total_rate=1.0, updated_at=DAY)
        second = make_snapshot("vDOT", total_rate=2.0, updated_at=DAY + timedelta(hours=1))
        assert dedupe_latest([first, second]) == [second]

    def test_sort_missing_values_last(self):
        rates = [5, None, 10, 3, 8]
        snaps = [make_snapshot(f"A{i}", total_rate=r) for i, r in enumerate(rates)]

        top = sort_and_limit(snaps, SortField.TOTAL_RATE, 3)

        assert [s.total_rate for s in top] == [10, 8, 5]

    def test_sort_by_datetime_field(self):
        snaps = [
            make_snapshot("A", captured_at=DAY),
            make_snapshot("B", captured_at=DAY + timedelta(hours=2)),
        ]
        assert [s.asset_symbol for s in sort_and_limit(snaps, SortField.CAPTURED_AT, 5)] == ["B", "A"]


class TestLatest:
    def test_sort_limit_contract(self, db_session):
        for i, rate in enumerate([5, None, 10, 3, 8]):
            _store(db_session, make_snapshot(f"T{i}", total_rate=rate))

        pools = QueryService(db_session).latest(LatestFilter(sort_field="total_rate", limit=3))

        assert [p.total_rate for p in pools] == [10, 8, 5]

    def test_one_row_per_pool(self, seeded):
        pools = QueryService(seeded).latest()

        assert len(pools) == 4
        by_asset = {p.asset_symbol: p for p in pools}
        assert by_asset["vDOT"].total_rate == 16.0
        assert by_asset["GLMR"].total_rate == 4.0
        # Default sort: total_rate desc, missing last
        assert [p.asset_symbol for p in pools] == ["vDOT", "USDC", "GLMR", "HDX"]

    def test_multi_chain_markets_not_collapsed(self, seeded):
        pools = QueryService(seeded).latest(LatestFilter(source="moonwell"))
        assert {(p.asset_symbol, p.network) for p in pools} == {("GLMR", "moonbeam"), ("USDC", "base")}

    def test_filters(self, seeded):
        service = QueryService(seeded)
        assert [p.asset_symbol for p in service.latest(LatestFilter(category="dex"))] == ["HDX"]
        assert [p.asset_symbol for p in service.latest(LatestFilter(network="base"))] == ["USDC"]
        assert [p.asset_symbol for p in service.latest(LatestFilter(min_rate=5))] == ["vDOT"]

    def test_asset_match_is_case_insensitive(self, seeded):
        pools = QueryService(seeded).latest(LatestFilter(asset="VDOT"))
        assert [p.asset_symbol for p in pools] == ["vDOT"]

    def test_unknown_source_means_all(self, seeded):
        pools = QueryService(seeded).latest(LatestFilter(source="nonexistent"))
        assert len(pools) == 4

    def test_sort_by_tvl(self, seeded):
        pools = QueryService(seeded).latest(LatestFilter(sort_field=SortField.TVL, limit=1))
        assert pools[0].asset_symbol == "HDX"

    def test_top(self, seeded):
        pools = QueryService(seeded).top(limit=2)
        assert [p.asset_symbol for p in pools] == ["vDOT", "USDC"]

    def test_limit_bounds(self):
        with pytest.raises(ValidationError):
            LatestFilter(limit=0)
        with pytest.raises(ValidationError):
            LatestFilter(limit=201)
        assert LatestFilter().limit == 50

    def test_empty_store(self, db_session):
        assert QueryService(db_session).latest() == []

    def test_loads_one_row_per_pool(self, db_session, monkeypatch):
        from yield_core.query import service as service_module

        for day in range(365):
            at = DAY + timedelta(days=day)
            _store(db_session, make_snapshot("vDOT", total_rate=float(day), observed_at=at))
        _store(db_session, make_snapshot("vKSM", total_rate=1.0, observed_at=DAY))

        loaded = []
        real_row_to_snapshot = service_module.row_to_snapshot

        def counting(row):
            loaded.append(row.asset_symbol)
            return real_row_to_snapshot(row)

        monkeypatch.setattr(service_module, "row_to_snapshot", counting)

        pools = QueryService(db_session).latest()

        assert sorted(loaded) == ["vDOT", "vKSM"]
        assert [p.total_rate for p in pools] == [364.0, 1.0]

    def test_filters_apply_before_reduction(self, db_session):
        _store(db_session, make_snapshot("vDOT", total_rate=9.0, observed_at=DAY))
        _store(db_session, make_snapshot("vDOT", total_rate=2.0, observed_at=DAY + timedelta(days=1)))

        pools = QueryService(db_session).latest(LatestFilter(min_rate=5))

        # Newest reading below the threshold; the newest matching one is returned.
        assert [p.total_rate for p in pools] == [9.0]


class TestHistory:
    def test_inclusive_range_ascending(self, db_session):
        for day in range(1, 11):
            at = datetime(2026, 3, day, 12, tzinfo=timezone.utc)
            _store(db_session, make_snapshot("vDOT", total_rate=float(day), observed_at=at))

        points = QueryService(db_session).history(HistoryFilter(
            asset="vDOT",
            from_time=datetime(2026, 3, 3, 12, tzinfo=timezone.utc),
            to_time=datetime(2026, 3, 7, 12, tzinfo=timezone.utc),
        ))

        assert [p.total_rate for p in points] == [3.0, 4.0, 5.0, 6.0, 7.0]
        assert [p.day_bucket for p in points][0] == "2026-03-03"

    def test_no_deduplication(self, seeded):
        points = QueryService(seeded).history(HistoryFilter(source="bifrost"))
        assert [p.total_rate for p in points] == [14.0, 15.0, 16.0]

    def test_naive_bounds_are_utc(self, seeded):
        points = QueryService(seeded).history(HistoryFilter(
            asset="GLMR",
            from_time=datetime(2026, 3, 2),
            to_time=datetime(2026, 3, 4),
        ))
        assert [p.total_rate for p in points] == [3.0, 4.0]

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            HistoryFilter(from_time=DAY, to_time=DAY - timedelta(days=1))


class TestDistinct:
    def test_networks(self, seeded):
        networks = QueryService(seeded).distinct_networks()

        assert [n.network for n in networks] == ["base", "bifrost", "hydration", "moonbeam"]
        moonbeam = networks[-1]
        assert moonbeam.label == "Moonbeam"
        assert moonbeam.sources == ["moonwell"]

    def test_categories(self, seeded):
        categories = {c.category: c for c in QueryService(seeded).distinct_categories()}

        assert categories["vstaking"].label == "Liquid Staking"
        assert categories["vstaking"].classification == "staking"
        assert categories["dex"].classification == "defi"
        assert categories["lending"].sources == ["moonwell"]

    def test_assets(self, seeded):
        assets = {a.asset_symbol: a for a in QueryService(seeded).distinct_assets()}

        assert set(assets) == {"GLMR", "HDX", "USDC", "vDOT"}
        assert assets["vDOT"].sources == ["bifrost"]
        assert assets["USDC"].networks == ["base"]
        assert assets["GLMR"].categories == ["lending"]

    def test_cache_hit_skips_store(self, seeded, query_count):
        service = QueryService(seeded)
        first = service.distinct_networks()
        after_first = query_count["n"]

        second = service.distinct_networks()

        assert after_first > 0
        assert query_count["n"] == after_first
        assert second == first

    def test_cache_shared_across_services(self, seeded, query_count):
        cache = TTLCache()
        QueryService(seeded, cache=cache).distinct_assets()
        before = query_count["n"]
        QueryService(seeded, cache=cache).distinct_assets()
        assert query_count["n"] == before

    def test_cache_expiry_requeries(self, seeded, query_count):
        with patch("yield_core.query.cache.time") as mock_time:
            mock_time.monotonic.return_value = 1000.0
            service = QueryService(seeded, cache=TTLCache(ttl_seconds=300))
            service.distinct_categories()
            before = query_count["n"]

            mock_time.monotonic.return_value = 1299.0
            service.distinct_categories()
            assert query_count["n"] == before

            mock_time.monotonic.return_value = 1300.0
            service.distinct_categories()
            assert query_count["n"] > before

    def test_stale_until_expiry(self, seeded):
        service = QueryService(seeded)
        assert len(service.distinct_assets()) == 4

        _store(seeded, make_snapshot("vKSM", observed_at=DAY))
        assert len(service.distinct_assets()) == 4

        service.invalidate_meta()
        assert len(service.distinct_assets()) == 5


class TestLabels:
    def test_generic_label(self):
        assert generic_label("moonbeam-alpha") == "Moonbeam Alpha"

    def test_network_overrides(self):
        assert network_label("bsc") == "BNB Smart Chain"
        assert network_label("hydration") == "Hydration"

    def test_unknown_category_is_other(self):
        assert category_info("perps") == ("Perps", "other")
