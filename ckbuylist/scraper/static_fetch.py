"""
CK Buylist: Static Page Fetcher

Plain HTTP GET with a browser-like user agent. No JavaScript runs, so only
server-rendered markup (or a JSON body, when the endpoint returns one) is
available. Failures are not retried: the paginator stops on ``FetchError``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.errors import FetchError
from ckbuylist.scraper import RawPage
from ckbuylist.scraper.anti_detect import AntiDetect
from ckbuylist.scraper.network_intercept import find_product_items

logger = structlog.get_logger(__name__)


class StaticFetcher:
    """
    httpx-backed fetcher.

    Usage:
        async with StaticFetcher() as fetcher:
            page = await fetcher.fetch_page(url)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        anti_detect: AntiDetect | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._anti_detect = anti_detect or AntiDetect(self._settings)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> StaticFetcher:
        self._client = httpx.AsyncClient(
            headers=self._anti_detect.request_headers(),
            timeout=self._settings.HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_page(self, url: str) -> RawPage:
        assert self._client is not None, "Fetcher not initialized. Use 'async with'."

        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            logger.warning("static_fetch_network_error", url=url, error=str(e), source="static_fetch")
            raise FetchError(url, f"network error: {e}") from e

        if not response.is_success:
            logger.warning(
                "static_fetch_http_error",
                url=url,
                status_code=response.status_code,
                source="static_fetch",
            )
            raise FetchError(url, f"HTTP {response.status_code}", response.status_code)

        content_type = response.headers.get("content-type", "").lower()
        if "application/json" in content_type:
            try:
                items = find_product_items(response.json())
            except ValueError:
                items = []
            return RawPage(url=url, json_items=items)

        return RawPage(url=url, html=response.text)
