"""
CK Buylist: Application Entrypoint

Configures structlog and performs one tracking run.

Run via:
    python -m ckbuylist.main
"""

from __future__ import annotations

import asyncio
import logging
import sys

import structlog

from ckbuylist.config import settings
from ckbuylist.errors import CKBuylistError
from ckbuylist.pipeline.run import run_once


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Configure stdlib logging first (for third-party libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main() -> None:
    """Configure logging, then run once."""
    _configure_logging(log_level="DEBUG" if settings.CK_DEBUG else settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    logger.info(
        "ckbuylist_startup",
        fetch_strategy=settings.FETCH_STRATEGY.value,
        price_mode=settings.PRICE_MODE.value,
        timestamp_format=settings.TIMESTAMP_FORMAT.value,
        database_mirror=bool(settings.DATABASE_URL),
    )

    try:
        await run_once(settings)
    except CKBuylistError as e:
        logger.error("ckbuylist_fatal_error", error=str(e), error_type=type(e).__name__)
        raise


def run() -> None:
    try:
        asyncio.run(main())
    except CKBuylistError:
        # Already logged by main().
        sys.exit(1)


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    run()
