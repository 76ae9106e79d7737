"""
CK Buylist: Sheet Writer

Folds one run's records into the output tab without rewriting history:

- one new column, labelled with the run timestamp, one past the rightmost
  non-empty header cell;
- existing rows matched by identity get their price in that column;
- unseen identities are appended as rows holding only the identity prefix,
  then their prices are written into the new column for exactly the rows
  the append reported.

No other existing cell is touched. Partial writes are not rolled back.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog
from googleapiclient.errors import HttpError
from pydantic import BaseModel, Field

from ckbuylist.config import Settings, TimestampFormat, settings as default_settings
from ckbuylist.errors import ConfigReadError, WriteError
from ckbuylist.scraper import CardRecord
from ckbuylist.scraper.identity import IdentityKeyPolicy
from ckbuylist.sheets.a1 import column_letter, parse_updated_range, quote_sheet
from ckbuylist.sheets.client import SheetsClient
from ckbuylist.utils.timestamps import render_timestamp, utc_now

logger = structlog.get_logger(__name__)

IDENTITY_LABELS = {
    "name": "Card Name",
    "edition": "Edition",
    "rarity": "Rarity",
    "condition": "Condition",
    "collector_number": "Collector #",
    "foil": "Foil",
}

DEFAULT_GRID_COLUMNS = 26
SheetValue = str | float


class WriteBatch(BaseModel):
    """Everything one run writes to the output tab."""

    column_index: int                          # 1-based
    column_letter: str
    header_value: SheetValue
    identity_header: list[str] | None = None   # only when the tab is empty
    existing_values: list[SheetValue] = Field(default_factory=list)
    matched_rows: int = 0
    append_rows: list[list[str]] = Field(default_factory=list)
    append_values: list[SheetValue] = Field(default_factory=list)

    @property
    def existing_row_count(self) -> int:
        return len(self.existing_values)


class WriteSummary(BaseModel):
    records: int
    rows_updated: int
    rows_appended: int
    column: str
    header: SheetValue


def price_cell(price: Decimal | None) -> SheetValue:
    """Numbers go out as numbers, missing prices as blank cells."""
    return float(price) if price is not None else ""


class SheetWriter:
    """
    Reconciles scraped records with the output tab.

    Usage:
        writer = SheetWriter(SheetsClient.from_settings())
        summary = writer.write(records)
    """

    def __init__(
        self,
        client: SheetsClient,
        settings: Settings | None = None,
        identity: IdentityKeyPolicy | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or default_settings
        self.identity = identity or IdentityKeyPolicy(self._settings.sheet_identity_fields)
        self.sheet = self._settings.OUTPUT_SHEET

    @property
    def _tab(self) -> str:
        return quote_sheet(self.sheet)

    # -----------------------------------------------------------------------
    # Planning
    # -----------------------------------------------------------------------

    def _identity_values(self, record: CardRecord) -> list[str]:
        values: list[str] = []
        for field in self.identity.fields:
            value = getattr(record, field)
            if isinstance(value, bool):
                values.append("FOIL" if value else "")
            else:
                values.append("" if value is None else str(value))
        return values

    def reconcile(
        self,
        existing_rows: list[list[Any]],
        records: list[CardRecord],
        run_at: datetime,
    ) -> WriteBatch:
        """
        Plan the writes for ``records`` against the tab's current contents.

        Args:
            existing_rows: Values of the tab, header row first.
            records: This run's records, in scrape order.
            run_at: Run timestamp.

        Returns:
            A WriteBatch. Repeated identities collapse, last price wins.
        """
        header = existing_rows[0] if existing_rows else []
        data_rows = existing_rows[1:]
        prefix_len = len(self.identity.fields)

        last_non_empty = 0
        for i in range(len(header) - 1, -1, -1):
            if str(header[i] if header[i] is not None else "").strip():
                last_non_empty = i + 1
                break
        new_col = max(last_non_empty, prefix_len) + 1

        identity_header = None
        if last_non_empty == 0:
            identity_header = [IDENTITY_LABELS[f] for f in self.identity.fields]

        row_by_key: dict[tuple[str, ...], int] = {}
        for idx, row in enumerate(data_rows):
            key = self.identity.key_from_values(list(row[:prefix_len]))
            if any(key):
                row_by_key.setdefault(key, idx)

        existing_values: list[SheetValue] = ["" for _ in data_rows]
        matched: set[int] = set()
        pending: dict[tuple[str, ...], int] = {}
        append_rows: list[list[str]] = []
        append_values: list[SheetValue] = []

        for record in records:
            key = self.identity.key(record)
            value = price_cell(record.price)
            if key in row_by_key:
                idx = row_by_key[key]
                existing_values[idx] = value
                matched.add(idx)
            elif key in pending:
                append_values[pending[key]] = value
            else:
                pending[key] = len(append_rows)
                append_rows.append(self._identity_values(record))
                append_values.append(value)

        return WriteBatch(
            column_index=new_col,
            column_letter=column_letter(new_col),
            header_value=render_timestamp(run_at, self._settings.TIMESTAMP_FORMAT, self._settings.TIMEZONE),
            identity_header=identity_header,
            existing_values=existing_values,
            matched_rows=len(matched),
            append_rows=append_rows,
            append_values=append_values,
        )

    # -----------------------------------------------------------------------
    # Applying
    # -----------------------------------------------------------------------

    def write(self, records: list[CardRecord], run_at: datetime | None = None) -> WriteSummary:
        """
        Read the tab, plan, and apply.

        Raises:
            ConfigReadError: the output tab is missing or unreadable.
            WriteError: any write was rejected.
        """
        run_at = run_at or utc_now()
        # Header row is read unbounded; identity values from the prefix columns only.
        header_range = f"{self._tab}!1:1"
        identity_range = f"{self._tab}!A:{column_letter(len(self.identity.fields))}"
        try:
            header_rows = self._client.get_values(header_range)
            identity_rows = self._client.get_values(identity_range)
            props = self._client.get_sheet_properties(self.sheet)
        except HttpError as e:
            logger.error("sheet_read_failed", sheet=self.sheet, error=str(e), source="sheet_writer")
            raise ConfigReadError(f"Could not read output tab {self.sheet!r}") from e
        if props is None:
            raise ConfigReadError(f"Sheet {self.sheet!r} not found")

        rows = [header_rows[0] if header_rows else []] + identity_rows[1:]
        batch = self.reconcile(rows, records, run_at)
        logger.debug(
            "sheet_write_plan",
            sheet=self.sheet,
            column=batch.column_letter,
            existing_rows=batch.existing_row_count,
            matched=batch.matched_rows,
            appending=len(batch.append_rows),
            source="sheet_writer",
        )

        try:
            self._apply(batch, props)
        except HttpError as e:
            logger.error("sheet_write_failed", sheet=self.sheet, error=str(e), source="sheet_writer")
            raise WriteError(f"Write to {self.sheet!r} failed: {e}") from e

        summary = WriteSummary(
            records=len(records),
            rows_updated=batch.matched_rows,
            rows_appended=len(batch.append_rows),
            column=batch.column_letter,
            header=batch.header_value,
        )
        logger.info("sheet_write_complete", **summary.model_dump(), source="sheet_writer")
        return summary

    def _apply(self, batch: WriteBatch, props: dict[str, Any]) -> None:
        tab = self._tab
        col = batch.column_letter

        # Grid must be wide enough before anything lands in the new column.
        current_cols = props.get("gridProperties", {}).get("columnCount", DEFAULT_GRID_COLUMNS)
        if current_cols < batch.column_index:
            self._client.batch_update([{
                "updateSheetProperties": {
                    "properties": {
                        "sheetId": props["sheetId"],
                        "gridProperties": {"columnCount": batch.column_index},
                    },
                    "fields": "gridProperties.columnCount",
                }
            }])
            logger.info(
                "sheet_columns_expanded",
                sheet=self.sheet,
                from_columns=current_cols,
                to_columns=batch.column_index,
                source="sheet_writer",
            )

        if batch.identity_header:
            end = column_letter(len(batch.identity_header))
            self._client.update_values(f"{tab}!A1:{end}1", [batch.identity_header])

        if self._settings.TIMESTAMP_FORMAT is TimestampFormat.SERIAL:
            self._client.update_values(f"{tab}!{col}1", [[batch.header_value]], "USER_ENTERED")
            self._client.batch_update([_date_time_format_request(props["sheetId"], batch.column_index)])
        else:
            self._client.update_values(f"{tab}!{col}1", [[batch.header_value]])

        if batch.existing_row_count:
            self._client.update_values(
                f"{tab}!{col}2:{col}{batch.existing_row_count + 1}",
                [[v] for v in batch.existing_values],
            )

        if not batch.append_rows:
            return

        response = self._client.append_values(f"{tab}!A1", batch.append_rows)
        start_row, end_row = self._appended_rows(response, batch)
        count = end_row - start_row + 1
        values = [
            [batch.append_values[i] if i < len(batch.append_values) else ""]
            for i in range(count)
        ]
        self._client.update_values(f"{tab}!{col}{start_row}:{col}{end_row}", values)

    def _appended_rows(self, response: dict[str, Any], batch: WriteBatch) -> tuple[int, int]:
        """Rows the append landed in, falling back to an estimate from the read."""
        updated_range = (response or {}).get("updates", {}).get("updatedRange")
        parsed = parse_updated_range(updated_range)
        if parsed is not None and parsed.sheet == self.sheet and 1 <= parsed.row1 <= parsed.row2:
            return parsed.row1, parsed.row2

        logger.warning(
            "sheet_append_range_unknown",
            updated_range=updated_range,
            source="sheet_writer",
        )
        start = max(2, batch.existing_row_count + 2)
        return start, start + len(batch.append_rows) - 1

    # -----------------------------------------------------------------------
    # Row log
    # -----------------------------------------------------------------------

    def append_row_log(self, records: list[CardRecord], run_at: datetime | None = None) -> int:
        """
        Append ``[timestamp, edition, name, price]`` per record to ``ROW_LOG_SHEET``.

        Returns the number of rows appended (0 when the log tab is disabled).
        """
        log_sheet = self._settings.ROW_LOG_SHEET
        if not log_sheet or not records:
            return 0

        stamp = render_timestamp(run_at or utc_now(), self._settings.TIMESTAMP_FORMAT, self._settings.TIMEZONE)
        rows = [[stamp, r.edition, r.name, price_cell(r.price)] for r in records]
        try:
            self._client.append_values(f"{quote_sheet(log_sheet)}!A:D", rows, "USER_ENTERED")
        except HttpError as e:
            logger.error("row_log_write_failed", sheet=log_sheet, error=str(e), source="sheet_writer")
            raise WriteError(f"Write to {log_sheet!r} failed: {e}") from e

        logger.info("row_log_appended", sheet=log_sheet, rows=len(rows), source="sheet_writer")
        return len(rows)


def _date_time_format_request(sheet_id: int, column_index: int) -> dict[str, Any]:
    return {
        "repeatCell": {
            "range": {
                "sheetId": sheet_id,
                "startRowIndex": 0,
                "endRowIndex": 1,
                "startColumnIndex": column_index - 1,
                "endColumnIndex": column_index,
            },
            "cell": {
                "userEnteredFormat": {
                    "numberFormat": {"type": "DATE_TIME", "pattern": "yyyy-mm-dd hh:mm:ss"}
                }
            },
            "fields": "userEnteredFormat.numberFormat",
        }
    }
