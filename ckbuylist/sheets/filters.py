"""
CK Buylist: Filter Source

Reads the Filters tab and returns the rows marked for tracking. Column
order: edition, rarity (comma list), format, sort, page size, name, foil,
track. Every tracked row gets a "last attempt" stamp in one batched write,
whether or not its scrape later succeeds.

Foil handling is lopsided: only an explicit "no" excludes
foils. Blank or any other text keeps them.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

import structlog
from googleapiclient.errors import HttpError

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.errors import ConfigReadError, WriteError
from ckbuylist.scraper import FilterSpec
from ckbuylist.sheets.a1 import quote_sheet
from ckbuylist.sheets.client import SheetsClient
from ckbuylist.utils.rarity import split_rarity_cell
from ckbuylist.utils.timestamps import format_human, utc_now

logger = structlog.get_logger(__name__)

# 0-based positions within a filter row
EDITION, RARITY, FORMAT, SORT, PAGE_SIZE, NAME, FOIL, TRACK = range(8)


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _parse_page_size(raw: str, default: int, row_number: int) -> int:
    if not raw:
        return default
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        value = 0
    if value <= 0:
        logger.warning("filter_bad_page_size", row=row_number, value=raw, default=default, source="filter_source")
        return default
    return value


def parse_filter_row(
    row: Sequence[Any],
    row_number: int,
    settings: Settings | None = None,
) -> FilterSpec:
    """Turn one sheet row into a ``FilterSpec`` (tracked or not)."""
    cfg = settings or default_settings
    return FilterSpec(
        edition=_cell(row, EDITION),
        rarities=split_rarity_cell(_cell(row, RARITY)),
        format=_cell(row, FORMAT) or None,
        sort_order=_cell(row, SORT) or cfg.DEFAULT_SORT,
        page_size=_parse_page_size(_cell(row, PAGE_SIZE), cfg.DEFAULT_PAGE_SIZE, row_number),
        name_query=_cell(row, NAME) or None,
        include_foil=_cell(row, FOIL).lower() != "no",
        track=_cell(row, TRACK).lower() == "yes",
        row_number=row_number,
    )


class FilterSource:
    """
    Loads tracked filters from the configuration tab.

    Usage:
        source = FilterSource(SheetsClient.from_settings())
        filters = source.load_active_filters()
    """

    def __init__(self, client: SheetsClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or default_settings

    @property
    def _tab(self) -> str:
        return quote_sheet(self._settings.FILTERS_SHEET)

    def load_active_filters(self, now: datetime | None = None) -> list[FilterSpec]:
        """
        Read the filter range, stamp tracked rows, and return them.

        Raises:
            ConfigReadError: the range could not be read.
            WriteError: the last-attempt stamps could not be written.
        """
        cfg = self._settings
        first_row = cfg.FILTERS_FIRST_ROW
        range_ = f"{self._tab}!A{first_row}:{cfg.FILTERS_LAST_ATTEMPT_COLUMN}"

        try:
            rows = self._client.get_values(range_)
        except HttpError as e:
            logger.error("filter_read_failed", range=range_, error=str(e), source="filter_source")
            raise ConfigReadError(f"Could not read filter range {range_}") from e

        stamp = format_human(now or utc_now(), cfg.TIMEZONE)
        filters: list[FilterSpec] = []
        updates: list[dict[str, Any]] = []

        for offset, row in enumerate(rows):
            row_number = first_row + offset
            spec = parse_filter_row(row, row_number, cfg)
            logger.debug(
                "filter_row",
                row=row_number,
                edition=spec.edition,
                rarities=list(spec.rarities),
                include_foil=spec.include_foil,
                track=spec.track,
                source="filter_source",
            )
            if not spec.track:
                continue
            filters.append(spec)
            updates.append({
                "range": f"{self._tab}!{cfg.FILTERS_LAST_ATTEMPT_COLUMN}{row_number}",
                "values": [[stamp]],
            })

        if updates:
            try:
                self._client.batch_update_values(updates, value_input_option="RAW")
            except HttpError as e:
                logger.error("filter_stamp_failed", rows=len(updates), error=str(e), source="filter_source")
                raise WriteError("Could not write last-attempt stamps") from e

        logger.info("filters_loaded", rows=len(rows), tracked=len(filters), source="filter_source")
        return filters
