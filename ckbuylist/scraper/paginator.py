"""
CK Buylist: Paginator / Deduplicator

Walks one filter's result pages: fetch, extract, drop listings already
seen this run, decide whether another page exists.

Stop rules, checked in order after each fetch:
1. the page yielded no records;
2. the page's fingerprint repeats an earlier page (server looping), and
   nothing from it is added;
3. the page yielded fewer records than the filter's page size;
4. with ``REQUIRE_NEXT_LINK``, the markup has no link to page N+1.

A ``FetchError`` on the first page propagates. On any later page it ends
pagination and the records gathered so far are returned.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog
from bs4 import BeautifulSoup

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.errors import FetchError
from ckbuylist.scraper import CardRecord, FilterSpec, PageFetcher, RawPage
from ckbuylist.scraper.anti_detect import AntiDetect
from ckbuylist.scraper.diagnostics import HtmlSnapshotSink
from ckbuylist.scraper.extractor import Extractor
from ckbuylist.scraper.identity import IdentityKeyPolicy
from ckbuylist.scraper.url_builder import build_filter_url

logger = structlog.get_logger(__name__)


def has_next_link(raw_page: RawPage, page_num: int) -> bool:
    """True when the page's markup links to ``page=page_num + 1``."""
    if not raw_page.html:
        return False
    soup = BeautifulSoup(raw_page.html, "html.parser")
    return soup.select_one(f'a[href*="page={page_num + 1}"]') is not None


class Paginator:
    """
    Collects every unique record for one filter.

    Usage:
        async with StaticFetcher() as fetcher:
            records = await Paginator(fetcher, extractor).collect(filter_spec)
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: Extractor,
        identity: IdentityKeyPolicy | None = None,
        settings: Settings | None = None,
        diagnostics: HtmlSnapshotSink | None = None,
        delay: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self.fetcher = fetcher
        self.extractor = extractor
        self.identity = identity or IdentityKeyPolicy(self._settings.identity_fields)
        self.diagnostics = diagnostics
        self._delay = delay or AntiDetect(self._settings).page_delay

    async def collect(self, filter_spec: FilterSpec) -> list[CardRecord]:
        page_size = filter_spec.page_size or self._settings.DEFAULT_PAGE_SIZE
        seen_keys: set[tuple[str, ...]] = set()
        seen_fingerprints: set[str] = set()
        records: list[CardRecord] = []
        page_num = 1

        while True:
            url = build_filter_url(filter_spec, page_num, self._settings)
            try:
                raw_page = await self.fetcher.fetch_page(url)
            except FetchError as e:
                if page_num == 1:
                    raise
                logger.warning(
                    "pagination_fetch_failed",
                    edition=filter_spec.edition,
                    page=page_num,
                    error=str(e),
                    total=len(records),
                    source="paginator",
                )
                break

            if page_num == 1 and self.diagnostics is not None:
                self.diagnostics.record(filter_spec.edition, page_num, raw_page.html, filter_spec.row_number)

            found = self.extractor.extract(raw_page)
            if not found:
                logger.info("pagination_empty_page", edition=filter_spec.edition, page=page_num, source="paginator")
                break

            fingerprint = self.identity.fingerprint(found)
            if fingerprint in seen_fingerprints:
                logger.info("pagination_repeated_page", edition=filter_spec.edition, page=page_num, source="paginator")
                break
            seen_fingerprints.add(fingerprint)

            added = 0
            for record in found:
                key = self.identity.key(record)
                if key not in seen_keys:
                    seen_keys.add(key)
                    records.append(record)
                    added += 1

            logger.info(
                "page_scraped",
                edition=filter_spec.edition,
                page=page_num,
                found=len(found),
                added=added,
                total=len(records),
                source="paginator",
            )

            if len(found) < page_size:
                break
            if self._settings.REQUIRE_NEXT_LINK and not has_next_link(raw_page, page_num):
                logger.debug("pagination_no_next_link", edition=filter_spec.edition, page=page_num, source="paginator")
                break

            page_num += 1
            await self._delay()

        logger.info(
            "filter_scrape_complete",
            edition=filter_spec.edition,
            rarities=",".join(filter_spec.rarities),
            pages=page_num,
            total=len(records),
            source="paginator",
        )
        return records
