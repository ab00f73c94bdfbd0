"""Rendered-page adapter — headless Chromium via Playwright.

Each attempt launches an isolated browser, navigates, waits for the rows to
render, then walks the pagination: extract the current page, press "Next",
repeat. The walk stops when the next control is absent or disabled, or
after ``max_pages``. A failed attempt tears the browser down and the whole
sequence is retried with a linearly growing delay.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from yield_core.config.schema import BrowserConfig
from yield_core.logging import get_logger
from yield_core.sources.base import BaseAdapter, RenderExhaustedError, TRaw

log = get_logger(__name__)

# Pause after a pagination click so the table can re-render.
PAGE_SETTLE_MS = 2500


class RenderedPageAdapter(BaseAdapter[TRaw]):
    url: str
    row_selector = "table tbody tr"
    next_selector = 'button:has-text("Next")'
    dismiss_selector = (
        'button:has-text("Skip"), button:has-text("Dismiss"), button:has-text("Close")'
    )

    def __init__(self, options: BrowserConfig | None = None, page_wait_ms: int | None = None) -> None:
        self.options = options or BrowserConfig()
        self.page_wait_ms = self.options.page_wait_ms if page_wait_ms is None else page_wait_ms

    @abstractmethod
    def extract_rows(self, soup: BeautifulSoup) -> list[TRaw]:
        """Parse the rows of the currently rendered page."""

    @property
    def _timeout_ms(self) -> float:
        return self.options.timeout_s * 1000

    async def fetch_raw(self) -> list[TRaw]:
        attempts = self.options.retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with self._open_page() as page:
                    return await self._scrape(page)
            except Exception as exc:
                last_error = exc
                log.warning(
                    "render_attempt_failed",
                    adapter=self.label,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(exc),
                )
                if attempt < attempts:
                    await asyncio.sleep(self.options.retry_delay_s * attempt)

        log.error("render_exhausted", adapter=self.label, url=self.url, attempts=attempts)
        raise RenderExhaustedError(
            f"{self.label}: all {attempts} attempts failed for {self.url}"
        ) from last_error

    @asynccontextmanager
    async def _open_page(self) -> AsyncIterator[Any]:
        """Launch a fresh browser and yield a page; the browser is always closed."""
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=self.options.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            try:
                context = await browser.new_context(
                    viewport={
                        "width": self.options.viewport_width,
                        "height": self.options.viewport_height,
                    },
                    user_agent=self.options.user_agent,
                )
                page = await context.new_page()
                page.set_default_timeout(self._timeout_ms)
                page.on(
                    "requestfailed",
                    lambda req: log.debug("request_failed", adapter=self.label, url=req.url),
                )
                yield page
            finally:
                try:
                    await browser.close()
                except PlaywrightError as exc:
                    log.warning("browser_close_failed", adapter=self.label, error=str(exc))

    async def _scrape(self, page: Any) -> list[TRaw]:
        log.info("navigating", adapter=self.label, url=self.url)
        await page.goto(self.url, wait_until="networkidle", timeout=self._timeout_ms)
        await self._dismiss_modal(page)
        await page.wait_for_selector(self.row_selector, timeout=self._timeout_ms)
        if self.page_wait_ms > 0:
            await page.wait_for_timeout(self.page_wait_ms)

        rows: list[TRaw] = []
        for page_num in range(1, self.options.max_pages + 1):
            # Lazy tables only render rows that have been scrolled into view.
            await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            html = await page.content()
            page_rows = self.extract_rows(BeautifulSoup(html, "html.parser"))
            log.info("page_scraped", adapter=self.label, page=page_num, rows=len(page_rows))
            rows.extend(page_rows)

            if page_num == self.options.max_pages:
                log.warning("max_pages_reached", adapter=self.label, max_pages=page_num)
                break
            if not await self._next_page(page):
                break
            await page.wait_for_timeout(PAGE_SETTLE_MS)

        return rows

    async def _dismiss_modal(self, page: Any) -> None:
        try:
            button = await page.query_selector(self.dismiss_selector)
            if button is not None:
                await button.click()
                log.info("modal_dismissed", adapter=self.label)
                await page.wait_for_timeout(1000)
        except PlaywrightError as exc:
            log.debug("modal_dismiss_failed", adapter=self.label, error=str(exc))

    async def _next_page(self, page: Any) -> bool:
        """Click the next-page control. False when there is no usable control."""
        try:
            button = await page.query_selector(self.next_selector)
            if button is None:
                return False
            if await button.get_attribute("aria-disabled") == "true":
                return False
            if await button.is_disabled():
                return False
            if "disabled" in (await button.get_attribute("class") or "").lower():
                return False
            await button.click()
            return True
        except PlaywrightError as exc:
            log.warning("next_page_failed", adapter=self.label, error=str(exc))
            return False
