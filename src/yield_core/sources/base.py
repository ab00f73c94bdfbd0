"""Source adapter contract and the direct-fetch variant.

An adapter knows how to pull raw items from one upstream and map each of
them onto a :class:`Snapshot`. ``crawl()`` is shared: it runs
``fetch_raw()`` then ``normalize()`` per item, times the run, and packs a
:class:`CrawlResult`. Two variants implement ``fetch_raw()``:

* :class:`DirectFetchAdapter` — REST/GraphQL over httpx, no automatic retry.
* :class:`~yield_core.sources.rendered.RenderedPageAdapter` — headless
  browser with pagination and whole-session retry.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

import httpx

from yield_core.logging import get_logger
from yield_core.models import CrawlResult, Snapshot
from yield_core.timeutil import utc_now

log = get_logger(__name__)

TRaw = TypeVar("TRaw")


class SourceFetchError(RuntimeError):
    """A whole upstream call failed; the crawl for this source is lost."""


class RenderExhaustedError(SourceFetchError):
    """Every attempt of a rendered-page crawl failed."""


@runtime_checkable
class SourceAdapter(Protocol):
    """What the ingestion layer needs from any adapter."""

    source: str
    network: str
    category: str

    async def crawl(self) -> CrawlResult: ...

    async def close(self) -> None: ...


class BaseAdapter(ABC, Generic[TRaw]):
    """Shared crawl orchestration for both adapter variants."""

    source: str
    network: str
    category: str

    @abstractmethod
    async def fetch_raw(self) -> list[TRaw]:
        """Retrieve unprocessed items from the upstream, in upstream order."""

    @abstractmethod
    def normalize(self, raw: TRaw) -> Snapshot:
        """Map one raw item to a Snapshot. Must not perform I/O."""

    @property
    def label(self) -> str:
        return f"{self.source}/{self.network}/{self.category}"

    async def crawl(self) -> CrawlResult:
        start = time.monotonic()
        captured_at = utc_now()
        log.info("crawl_started", adapter=self.label)

        try:
            raw_items = await self.fetch_raw()
            data = [self.normalize(item) for item in raw_items]
        except Exception as exc:
            log.error("crawl_failed", adapter=self.label, error=str(exc))
            raise

        duration_ms = int((time.monotonic() - start) * 1000)
        log.info("crawl_complete", adapter=self.label, items=len(data), duration_ms=duration_ms)

        return CrawlResult(
            source=self.source,
            network=self.network,
            category=self.category,
            captured_at=captured_at,
            duration_ms=duration_ms,
            items_found=len(data),
            data=data,
        )

    async def close(self) -> None:
        """Release held resources. Default: nothing to release."""


class DirectFetchAdapter(BaseAdapter[TRaw]):
    """Adapter backed by plain HTTP calls.

    The httpx client is created lazily; pass ``http`` to share one client
    between adapters (or to inject a mock transport in tests). Item loops
    should call :meth:`_get_json_item`, which logs and returns ``None`` on
    a failed item instead of raising.
    """

    def __init__(self, http: httpx.AsyncClient | None = None, timeout_s: float = 20.0) -> None:
        self._timeout_s = timeout_s
        self._http = http
        self._owns_http = http is None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self._timeout_s)
            self._owns_http = True
        return self._http

    async def close(self) -> None:
        if self._owns_http and self._http and not self._http.is_closed:
            await self._http.aclose()

    async def _get_json_item(self, url: str, item: str) -> Any | None:
        """GET *url* for a single item; ``None`` on non-2xx, transport error or bad JSON."""
        http = await self._get_http()
        try:
            resp = await http.get(url)
        except httpx.HTTPError as exc:
            log.warning("item_fetch_failed", adapter=self.label, item=item, error=str(exc))
            return None

        if resp.status_code >= 400:
            log.warning(
                "item_fetch_failed",
                adapter=self.label,
                item=item,
                status=resp.status_code,
                reason=resp.reason_phrase,
            )
            return None

        try:
            return resp.json()
        except ValueError:
            log.warning("item_bad_json", adapter=self.label, item=item)
            return None

    async def _post_json(self, url: str, payload: dict) -> Any:
        """POST a JSON body; any failure is a source-level error."""
        http = await self._get_http()
        resp = await http.post(url, json=payload)
        if resp.status_code >= 400:
            raise SourceFetchError(f"{self.label}: HTTP {resp.status_code} {resp.reason_phrase}")
        return resp.json()
