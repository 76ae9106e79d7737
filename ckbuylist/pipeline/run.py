"""
CK Buylist: One tracking run

Filters -> concurrent scrape -> sheet write (+ optional row log and
relational mirror). Sheets calls are blocking and run in a worker thread.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.pipeline.price_store import create_session_factory, store_records
from ckbuylist.scraper import CardRecord
from ckbuylist.scraper.runner import ScrapeRunner
from ckbuylist.sheets.client import SheetsClient
from ckbuylist.sheets.filters import FilterSource
from ckbuylist.sheets.writer import SheetWriter
from ckbuylist.utils.timestamps import utc_now

logger = structlog.get_logger(__name__)


class RunSummary(BaseModel):
    filters: int = 0
    records: int = 0
    rows_updated: int = 0
    rows_appended: int = 0
    column: str | None = None
    row_log_rows: int = 0
    db_rows: int = 0


async def run_once(
    settings: Settings | None = None,
    client: SheetsClient | None = None,
    runner: ScrapeRunner | None = None,
) -> RunSummary:
    """
    Execute one full run.

    Args:
        settings: Optional settings override.
        client: Sheets client; built from settings when omitted.
        runner: Scrape runner; built from settings when omitted.

    Returns:
        RunSummary of what was written.

    Raises:
        ConfigReadError: filters or output tab unreadable, or no credentials.
        WriteError: a sheet write was rejected.
    """
    cfg = settings or default_settings
    run_at = utc_now()

    if client is None:
        client = await asyncio.to_thread(SheetsClient.from_settings, cfg)

    filters = await asyncio.to_thread(FilterSource(client, cfg).load_active_filters, run_at)
    if not filters:
        logger.warning("run_no_tracked_filters", source="run")
        return RunSummary()

    records = await (runner or ScrapeRunner(cfg)).scrape_all(filters)

    writer = SheetWriter(client, cfg)
    write_summary = await asyncio.to_thread(writer.write, records, run_at)
    row_log_rows = await asyncio.to_thread(writer.append_row_log, records, run_at)
    db_rows = await _mirror_to_database(records, run_at, cfg)

    summary = RunSummary(
        filters=len(filters),
        records=len(records),
        rows_updated=write_summary.rows_updated,
        rows_appended=write_summary.rows_appended,
        column=write_summary.column,
        row_log_rows=row_log_rows,
        db_rows=db_rows,
    )
    logger.info("run_complete", **summary.model_dump(), source="run")
    return summary


async def _mirror_to_database(records: list[CardRecord], run_at: datetime, cfg: Settings) -> int:
    if not cfg.DATABASE_URL:
        return 0

    engine = None
    try:
        engine, session_factory = create_session_factory(cfg.DATABASE_URL)
        async with session_factory() as session:
            return await store_records(records, session, run_at, cfg.PRICE_MODE)
    except SQLAlchemyError as e:
        logger.error(
            "buylist_prices_store_failed",
            records=len(records),
            error=str(e),
            error_type=type(e).__name__,
            source="run",
        )
        return 0
    finally:
        if engine is not None:
            await engine.dispose()
