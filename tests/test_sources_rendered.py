"""Tests for the rendered-page adapter and the Hydration table parser."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import pytest
from bs4 import BeautifulSoup

from yield_core.config import PoolConfig
from yield_core.config.schema import BrowserConfig
from yield_core.sources import rendered
from yield_core.sources.base import RenderExhaustedError
from yield_core.sources.hydration import (
    HydrationOmnipoolAdapter,
    HydrationPoolRow,
    classify_pool,
    parse_dollar,
    parse_percent,
)


def _row(symbol, name, price, volume, tvl, apr):
    name_p = f"<p>{name}</p>" if name else ""
    return (
        f"<tr><td><div><p>{symbol}</p>{name_p}</div></td>"
        f"<td><p>{price}</p></td><td><p>{volume}</p></td>"
        f"<td><p>{tvl}</p></td><td><span>{apr}</span></td></tr>"
    )


def _table(*rows):
    return f"<html><body><table><tbody>{''.join(rows)}</tbody></table></body></html>"


PAGE_1 = _table(
    _row("HDX", "Hydration", "$0.012", "$150,000", "$2,500,000.50", "3.1% + 9.5%"),
    _row("USDT", "Tether", "$1.00", "$40,000", "$900,000", "7.25%"),
)
PAGE_2 = _table(
    _row("2-Pool", None, "$1.00", "$1,000", "$500,000", "--"),
    "<tr><td><p></p></td><td>$1</td><td>$1</td><td>$1</td></tr>",
    "<tr><td><p>SHORT</p></td><td>$1</td></tr>",
)


class FakeButton:
    def __init__(self, page, aria_disabled=None, disabled=False, css_class=""):
        self.page = page
        self.aria_disabled = aria_disabled
        self.disabled = disabled
        self.css_class = css_class

    async def get_attribute(self, name):
        return {"aria-disabled": self.aria_disabled, "class": self.css_class}.get(name)

    async def is_disabled(self):
        return self.disabled

    async def click(self):
        self.page.clicks += 1
        self.page.index += 1


class FakePage:
    """Serves *pages* in order; the Next control is built by *next_button*."""

    def __init__(self, pages, next_button=None, fail_on_goto=None):
        self.pages = pages
        self.index = 0
        self.clicks = 0
        self.visited = []
        self.next_button = next_button or (
            lambda page: FakeButton(page) if page.index < len(page.pages) - 1 else None
        )
        self.fail_on_goto = fail_on_goto

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        if self.fail_on_goto is not None:
            raise self.fail_on_goto

    async def query_selector(self, selector):
        if "Next" in selector:
            return self.next_button(self)
        return None

    async def wait_for_selector(self, selector, **kwargs):
        return None

    async def wait_for_timeout(self, ms):
        return None

    async def evaluate(self, script):
        return None

    async def content(self):
        return self.pages[self.index]


class ScriptedHydration(HydrationOmnipoolAdapter):
    """Hydration adapter whose browser sessions come from a list of fake pages."""

    def __init__(self, pages, **browser):
        browser.setdefault("retry_delay_s", 0.5)
        super().__init__(PoolConfig(url="https://hydration.test/pools"), BrowserConfig(**browser))
        self._pages = list(pages)
        self.opened = 0
        self.closed = 0

    @asynccontextmanager
    async def _open_page(self):
        page = self._pages[min(self.opened, len(self._pages) - 1)]
        self.opened += 1
        try:
            yield page
        finally:
            self.closed += 1


@pytest.fixture
def sleeps(monkeypatch):
    calls = []

    async def fake_sleep(delay):
        calls.append(delay)

    monkeypatch.setattr(rendered.asyncio, "sleep", fake_sleep)
    return calls


class TestParsers:
    def test_parse_dollar(self):
        assert parse_dollar("$1,234.5") == 1234.5
        assert parse_dollar("$ 0.012") == 0.012
        assert parse_dollar("--") is None
        assert parse_dollar(None) is None

    def test_parse_dollar_compact_suffixes(self):
        assert parse_dollar("$1.2M") == pytest.approx(1_200_000)
        assert parse_dollar("$850K") == pytest.approx(850_000)
        assert parse_dollar("$3.4b") == pytest.approx(3_400_000_000)
        assert parse_dollar("$1.2X") is None
        assert parse_dollar("$12M extra") is None

    def test_parse_percent_takes_first(self):
        assert parse_percent("3.1% + 9.5%") == 3.1
        assert parse_percent("APR 12 %") == 12.0
        assert parse_percent("--") is None

    def test_classify_pool(self):
        markers = ["USDT", "USDC", "Pool"]
        assert classify_pool("USDT", None, markers) == "stablepool"
        assert classify_pool("2-Pool", None, markers) == "stablepool"
        assert classify_pool("XYZ", "USDC wrapper", markers) == "stablepool"
        assert classify_pool("HDX", "Hydration", markers) == "omnipool"


class TestHydrationExtract:
    def _adapter(self, **pool):
        return HydrationOmnipoolAdapter(PoolConfig(**pool))

    def test_extracts_valid_rows(self):
        rows = self._adapter().extract_rows(BeautifulSoup(PAGE_1, "html.parser"))

        assert [r.asset_symbol for r in rows] == ["HDX", "USDT"]
        hdx = rows[0]
        assert hdx.asset_name == "Hydration"
        assert hdx.price_usd == 0.012
        assert hdx.volume_24h_usd == 150000
        assert hdx.tvl_usd == 2500000.5
        assert hdx.fee_and_farm_apr == 3.1
        assert hdx.pool_category == "omnipool"
        assert rows[1].pool_category == "stablepool"

    def test_skips_short_and_unlabelled_rows(self):
        rows = self._adapter().extract_rows(BeautifulSoup(PAGE_2, "html.parser"))
        assert [r.asset_symbol for r in rows] == ["2-Pool"]
        assert rows[0].fee_and_farm_apr is None
        assert rows[0].asset_name is None

    def test_configured_stable_markers(self):
        adapter = self._adapter(stable_markers=["HDX"])
        rows = adapter.extract_rows(BeautifulSoup(PAGE_1, "html.parser"))
        assert [r.pool_category for r in rows] == ["stablepool", "omnipool"]

    def test_normalize(self):
        adapter = self._adapter(url="https://hydration.test/pools")
        snap = adapter.normalize(HydrationPoolRow(
            asset_symbol="HDX", asset_name="Hydration", price_usd=0.012,
            volume_24h_usd=1.0, tvl_usd=2.0, fee_and_farm_apr=3.1,
        ))
        assert snap.source == "hydration"
        assert snap.network == "hydration"
        assert snap.category == "dex"
        assert snap.total_rate == 3.1
        assert snap.total_value_locked_usd == 2.0
        assert snap.supply_rate is None
        assert snap.extra["pool_category"] == "omnipool"
        assert snap.extra["source_url"] == "https://hydration.test/pools"


class TestRenderedPagination:
    def test_walks_all_pages(self, sleeps):
        page = FakePage([PAGE_1, PAGE_2])
        adapter = ScriptedHydration([page])

        result = asyncio.run(adapter.crawl())

        assert [s.asset_symbol for s in result.data] == ["HDX", "USDT", "2-Pool"]
        assert page.clicks == 1
        assert page.visited == ["https://hydration.test/pools"]
        assert adapter.closed == 1
        assert sleeps == []

    @pytest.mark.parametrize("button_kwargs", [
        {"aria_disabled": "true"},
        {"disabled": True},
        {"css_class": "btn btn--Disabled"},
    ])
    def test_disabled_next_stops(self, button_kwargs):
        page = FakePage([PAGE_1, PAGE_2], next_button=lambda p: FakeButton(p, **button_kwargs))
        rows = asyncio.run(ScriptedHydration([page]).fetch_raw())

        assert len(rows) == 2
        assert page.clicks == 0

    def test_max_pages_bounds_walk(self):
        # Next is always enabled; only max_pages ends the walk.
        page = FakePage([PAGE_1] * 10, next_button=lambda p: FakeButton(p))
        rows = asyncio.run(ScriptedHydration([page], max_pages=3).fetch_raw())

        assert len(rows) == 6
        assert page.clicks == 2


class TestRenderedRetry:
    def test_retries_then_succeeds(self, sleeps):
        broken = FakePage([PAGE_1], fail_on_goto=TimeoutError("navigation timeout"))
        good = FakePage([PAGE_1])
        adapter = ScriptedHydration([broken, broken, good], retries=2)

        rows = asyncio.run(adapter.fetch_raw())

        assert len(rows) == 2
        assert adapter.opened == 3
        assert adapter.closed == 3
        # Linear backoff: delay * attempt
        assert sleeps == [0.5, 1.0]

    def test_exhausted_raises_and_tears_down(self, sleeps):
        broken = FakePage([PAGE_1], fail_on_goto=TimeoutError("navigation timeout"))
        adapter = ScriptedHydration([broken], retries=2)

        with pytest.raises(RenderExhaustedError) as exc_info:
            asyncio.run(adapter.fetch_raw())

        assert adapter.opened == 3
        assert adapter.closed == 3
        assert sleeps == [0.5, 1.0]
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_no_retries_configured(self, sleeps):
        broken = FakePage([PAGE_1], fail_on_goto=RuntimeError("crash"))
        adapter = ScriptedHydration([broken], retries=0)

        with pytest.raises(RenderExhaustedError):
            asyncio.run(adapter.crawl())
        assert adapter.opened == 1
        assert sleeps == []
