"""
CK Buylist: Scrape Runner

Fans every tracked filter out as an independent pipeline on the event loop
and concatenates their results. Each filter gets its own fetch session
(HTTP client or browser context). A filter that fails contributes nothing
and never cancels the others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from playwright.async_api import async_playwright

from ckbuylist.config import FetchStrategy, Settings, settings as default_settings
from ckbuylist.errors import FetchError
from ckbuylist.scraper import CardRecord, FilterSpec, PageFetcher
from ckbuylist.scraper.anti_detect import AntiDetect
from ckbuylist.scraper.browser_fetch import BrowserFetcher
from ckbuylist.scraper.diagnostics import HtmlSnapshotSink
from ckbuylist.scraper.extractor import Extractor
from ckbuylist.scraper.identity import IdentityKeyPolicy
from ckbuylist.scraper.paginator import Paginator
from ckbuylist.scraper.pricing import PricePolicy
from ckbuylist.scraper.static_fetch import StaticFetcher

logger = structlog.get_logger(__name__)

FetcherFactory = Callable[[], PageFetcher]


class ScrapeRunner:
    """
    Runs all filters concurrently.

    Usage:
        runner = ScrapeRunner()
        records = await runner.scrape_all(filters)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher_factory: FetcherFactory | None = None,
        diagnostics: HtmlSnapshotSink | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._fetcher_factory = fetcher_factory
        self.extractor = Extractor(PricePolicy(self._settings.PRICE_MODE))
        self.identity = IdentityKeyPolicy(self._settings.identity_fields)
        self.anti_detect = AntiDetect(self._settings)
        if diagnostics is None and self._settings.CK_DUMP:
            diagnostics = HtmlSnapshotSink(auto_open=self._settings.CK_OPEN)
        self.diagnostics = diagnostics

    async def scrape_all(self, filters: list[FilterSpec]) -> list[CardRecord]:
        if not filters:
            return []

        async with self._fetchers() as factory:
            results = await asyncio.gather(
                *(self._scrape_filter(f, factory) for f in filters)
            )

        records = [record for batch in results for record in batch]
        logger.info("scrape_all_complete", filters=len(filters), records=len(records), source="scraper_runner")
        self._report_missing_expected(records)
        return records

    async def _scrape_filter(self, filter_spec: FilterSpec, factory: FetcherFactory) -> list[CardRecord]:
        logger.info(
            "filter_scrape_start",
            edition=filter_spec.edition,
            rarities=list(filter_spec.rarities),
            include_foil=filter_spec.include_foil,
            page_size=filter_spec.page_size,
            source="scraper_runner",
        )
        try:
            async with factory() as fetcher:
                paginator = Paginator(
                    fetcher,
                    self.extractor,
                    identity=self.identity,
                    settings=self._settings,
                    diagnostics=self.diagnostics,
                    delay=self.anti_detect.page_delay,
                )
                return await paginator.collect(filter_spec)
        except FetchError as e:
            logger.error(
                "filter_scrape_failed",
                edition=filter_spec.edition,
                url=e.url,
                error=e.reason,
                source="scraper_runner",
            )
        except Exception as e:
            logger.error(
                "filter_scrape_crashed",
                edition=filter_spec.edition,
                error=str(e),
                error_type=type(e).__name__,
                source="scraper_runner",
            )
        return []

    @asynccontextmanager
    async def _fetchers(self) -> AsyncIterator[FetcherFactory]:
        """Yield a per-filter fetcher factory, owning any shared browser."""
        if self._fetcher_factory is not None:
            yield self._fetcher_factory
            return

        if self._settings.FETCH_STRATEGY is FetchStrategy.STATIC:
            yield lambda: StaticFetcher(self._settings, self.anti_detect)
            return

        async with async_playwright() as pw:
            browser: Any = await pw.chromium.launch(
                headless=self._settings.HEADLESS,
                args=AntiDetect.LAUNCH_ARGS,
            )
            try:
                yield lambda: BrowserFetcher(browser, self._settings, self.anti_detect)
            finally:
                await browser.close()

    def _report_missing_expected(self, records: list[CardRecord]) -> None:
        expected = self._settings.expected_card_names
        if not expected:
            return
        got = {record.name.casefold() for record in records}
        missing = [name for name in expected if name.casefold() not in got]
        if missing:
            logger.warning("expected_cards_missing", missing=missing, total=len(records), source="scraper_runner")
        else:
            logger.debug("expected_cards_present", count=len(expected), source="scraper_runner")
