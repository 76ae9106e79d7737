"""
CK Buylist: Headless Browser Fetcher

Drives Chromium through Playwright so the buylist's JavaScript runs. JSON
responses seen during a navigation are captured as the preferred data
source for that page; the rendered markup is the fallback.

Each instance owns one browser context and page, created on enter and
closed on every exit path.
"""

from __future__ import annotations

from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.errors import FetchError
from ckbuylist.scraper import RawPage
from ckbuylist.scraper.anti_detect import AntiDetect
from ckbuylist.scraper.network_intercept import JsonResponseCollector

logger = structlog.get_logger(__name__)


class BrowserFetcher:
    """
    Playwright-backed fetcher for one filter.

    Usage:
        async with BrowserFetcher(browser) as fetcher:
            page = await fetcher.fetch_page(url)
    """

    def __init__(
        self,
        browser: Any,
        settings: Settings | None = None,
        anti_detect: AntiDetect | None = None,
    ) -> None:
        self._browser = browser
        self._settings = settings or default_settings
        self._anti_detect = anti_detect or AntiDetect(self._settings)
        self._collector = JsonResponseCollector()
        self._context: Any = None
        self._page: Any = None

    async def __aenter__(self) -> BrowserFetcher:
        self._context = await self._browser.new_context(**self._anti_detect.context_options())
        try:
            self._page = await self._context.new_page()
        except Exception:
            await self._context.close()
            self._context = None
            raise
        self._collector.attach(self._page)
        return self

    async def __aexit__(self, *args: Any) -> None:
        page, context = self._page, self._context
        self._page = self._context = None

        if page is not None:
            try:
                self._collector.detach(page)
                await page.close()
            except PlaywrightError as e:
                logger.warning("browser_page_close_failed", error=str(e), source="browser_fetch")
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning("browser_context_close_failed", error=str(e), source="browser_fetch")

    async def fetch_page(self, url: str) -> RawPage:
        assert self._page is not None, "Fetcher not initialized. Use 'async with'."
        page = self._page

        # Never reuse JSON captured for a previous page.
        self._collector.clear()

        try:
            response = await page.goto(
                url,
                wait_until="networkidle",
                timeout=self._settings.NAVIGATION_TIMEOUT_MS,
            )
        except PlaywrightTimeoutError:
            response = None
            logger.info("browser_navigation_timeout", url=url, source="browser_fetch")
        except PlaywrightError as e:
            logger.warning("browser_navigation_failed", url=url, error=str(e), source="browser_fetch")
            raise FetchError(url, f"navigation failed: {e}") from e

        if response is not None and response.status >= 400:
            logger.warning(
                "browser_http_error",
                url=url,
                status_code=response.status,
                source="browser_fetch",
            )
            raise FetchError(url, f"HTTP {response.status}", response.status)

        try:
            await page.wait_for_selector(
                self._settings.CONTENT_SELECTOR,
                timeout=self._settings.SELECTOR_TIMEOUT_MS,
            )
        except PlaywrightTimeoutError:
            logger.debug("browser_selector_timeout", url=url, source="browser_fetch")

        try:
            html = await page.content()
        except PlaywrightError as e:
            raise FetchError(url, f"could not read rendered content: {e}") from e

        json_items = await self._collector.drain()
        return RawPage(url=url, html=html, json_items=json_items)
