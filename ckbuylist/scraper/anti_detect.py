"""
CK Buylist: Polite-scraping helpers

Browser-like user agent, Chromium launch flags and the short pause between
result pages so the retailer is not hammered.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any

import structlog

from ckbuylist.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)


class AntiDetect:
    """
    Request identity and pacing for one scrape run.

    Uses ``USER_AGENT`` when configured, otherwise rotates through a small
    list of realistic desktop agents.
    """

    USER_AGENTS = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    ]

    LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or default_settings
        self._delay_seconds: float = self._settings.PAGE_DELAY_MS / 1000

    @property
    def user_agent(self) -> str:
        return self._settings.USER_AGENT or random.choice(self.USER_AGENTS)

    def request_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    def context_options(self) -> dict[str, Any]:
        """Keyword arguments for ``browser.new_context()``."""
        return {"user_agent": self.user_agent, "locale": "en-US"}

    async def page_delay(self) -> None:
        """Sleep between two result pages of the same filter."""
        if self._delay_seconds <= 0:
            return
        logger.debug("anti_detect_delay", delay_seconds=self._delay_seconds, source="anti_detect")
        await asyncio.sleep(self._delay_seconds)
