"""
CK Buylist: Test doubles

- In-memory fake of the Sheets client (values get/update/append, grid size)
- Scripted page fetcher for paginator / runner tests
"""

from __future__ import annotations

import re
from typing import Any

import httplib2
from googleapiclient.errors import HttpError

from ckbuylist.errors import FetchError
from ckbuylist.scraper import RawPage


def make_http_error(status: int = 403, message: str = "forbidden") -> HttpError:
    return HttpError(httplib2.Response({"status": status}), message.encode("utf-8"))


# ---------------------------------------------------------------------------
# Fake Sheets client
# ---------------------------------------------------------------------------

_CELL = re.compile(r"^([A-Z]*)(\d*)$")


def _col_index(letters: str) -> int:
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index


def _split_range(range_: str) -> tuple[str, str, str]:
    tab, _, cells = range_.partition("!")
    if tab.startswith("'") and tab.endswith("'"):
        tab = tab[1:-1].replace("''", "'")
    start, _, end = cells.partition(":")
    return tab, start, end


class FakeSheetsClient:
    """Stores each tab as a list of rows, trimming like the real API on read."""

    def __init__(
        self,
        tabs: dict[str, list[list[Any]]] | None = None,
        column_counts: dict[str, int] | None = None,
        report_updated_range: bool = True,
    ) -> None:
        self.tabs: dict[str, list[list[Any]]] = {
            title: [list(row) for row in rows] for title, rows in (tabs or {}).items()
        }
        self.column_counts = {title: 26 for title in self.tabs}
        self.column_counts.update(column_counts or {})
        self.report_updated_range = report_updated_range
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: dict[str, HttpError] = {}

    # -- helpers ------------------------------------------------------------

    def _check(self, method: str) -> None:
        if method in self.fail_on:
            raise self.fail_on[method]

    def _set(self, tab: str, row: int, col: int, value: Any) -> None:
        grid = self.tabs.setdefault(tab, [])
        while len(grid) < row:
            grid.append([])
        cells = grid[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = value

    def cell(self, tab: str, a1: str) -> Any:
        letters, digits = _CELL.match(a1).groups()
        row, col = int(digits), _col_index(letters)
        grid = self.tabs.get(tab, [])
        if row > len(grid) or col > len(grid[row - 1]):
            return ""
        return grid[row - 1][col - 1]

    def _last_row(self, tab: str) -> int:
        grid = self.tabs.get(tab, [])
        for i in range(len(grid) - 1, -1, -1):
            if any(str(v).strip() for v in grid[i]):
                return i + 1
        return 0

    # -- SheetsClient surface -------------------------------------------------

    def get_values(self, range_: str) -> list[list[Any]]:
        self.calls.append(("get_values", range_))
        self._check("get_values")
        tab, start, end = _split_range(range_)
        if tab not in self.tabs:
            raise make_http_error(400, f"Unable to parse range: {range_}")
        start_letters, start_digits = _CELL.match(start).groups()
        end_letters, end_digits = _CELL.match(end).groups()
        first_row = int(start_digits or 1)
        last_row = min(int(end_digits), self._last_row(tab)) if end_digits else self._last_row(tab)
        first_col = _col_index(start_letters) or 1
        last_col = _col_index(end_letters) or None
        rows = []
        for row in self.tabs[tab][first_row - 1 : last_row]:
            trimmed = list(row[first_col - 1 : last_col])
            while trimmed and trimmed[-1] in ("", None):
                trimmed.pop()
            rows.append(trimmed)
        return rows

    def update_values(self, range_: str, values: list[list[Any]], value_input_option: str = "RAW") -> dict:
        self.calls.append(("update_values", (range_, values, value_input_option)))
        self._check("update_values")
        tab, start, _ = _split_range(range_)
        letters, digits = _CELL.match(start).groups()
        row0, col0 = int(digits), _col_index(letters)
        for r, row in enumerate(values):
            for c, value in enumerate(row):
                self._set(tab, row0 + r, col0 + c, value)
        return {"updatedRange": range_}

    def batch_update_values(self, data: list[dict], value_input_option: str = "RAW") -> dict:
        self.calls.append(("batch_update_values", (data, value_input_option)))
        self._check("batch_update_values")
        for entry in data:
            tab, start, _ = _split_range(entry["range"])
            letters, digits = _CELL.match(start).groups()
            for r, row in enumerate(entry["values"]):
                for c, value in enumerate(row):
                    self._set(tab, int(digits) + r, _col_index(letters) + c, value)
        return {}

    def append_values(self, range_: str, values: list[list[Any]], value_input_option: str = "RAW") -> dict:
        self.calls.append(("append_values", (range_, values, value_input_option)))
        self._check("append_values")
        tab, _, _ = _split_range(range_)
        start = self._last_row(tab) + 1
        for r, row in enumerate(values):
            for c, value in enumerate(row):
                self._set(tab, start + r, 1 + c, value)
        if not self.report_updated_range:
            return {"updates": {}}
        width = max(len(row) for row in values)
        end_col = chr(64 + width)
        return {"updates": {"updatedRange": f"{tab}!A{start}:{end_col}{start + len(values) - 1}"}}

    def get_sheet_properties(self, title: str) -> dict | None:
        self.calls.append(("get_sheet_properties", title))
        self._check("get_sheet_properties")
        if title not in self.tabs:
            return None
        sheet_id = list(self.tabs).index(title)
        return {
            "sheetId": sheet_id,
            "title": title,
            "gridProperties": {"columnCount": self.column_counts[title], "rowCount": 1000},
        }

    def batch_update(self, requests: list[dict]) -> dict:
        self.calls.append(("batch_update", requests))
        self._check("batch_update")
        titles = list(self.tabs)
        for request in requests:
            props = request.get("updateSheetProperties", {}).get("properties")
            if props:
                title = titles[props["sheetId"]]
                self.column_counts[title] = props["gridProperties"]["columnCount"]
        return {}

    def method_calls(self, name: str) -> list[Any]:
        return [args for method, args in self.calls if method == name]


# ---------------------------------------------------------------------------
# Scripted fetcher
# ---------------------------------------------------------------------------


class ScriptedFetcher:
    """
    Returns pre-baked pages by page number (parsed from the URL).

    A page entry may be a RawPage or an exception instance to raise.
    Pages not in the script come back empty.
    """

    def __init__(self, pages: dict[int, Any] | None = None) -> None:
        self.pages = pages or {}
        self.urls: list[str] = []
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> ScriptedFetcher:
        self.entered = True
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.exited = True

    async def fetch_page(self, url: str) -> RawPage:
        self.urls.append(url)
        page_num = int(re.search(r"[?&]page=(\d+)", url).group(1))
        entry = self.pages.get(page_num)
        if isinstance(entry, Exception):
            raise entry
        return entry if entry is not None else RawPage(url=url)


def json_page(*cards: tuple[str, str, str] | tuple[str, str, str, Any]) -> RawPage:
    """RawPage whose JSON items are (name, edition, rarity[, credit price]) tuples."""
    items = []
    for card in cards:
        name, edition, rarity = card[:3]
        price = card[3] if len(card) > 3 else "1.00"
        items.append({"name": name, "edition": edition, "rarity": rarity, "price": {"credit": price}})
    return RawPage(url="https://example.test", json_items=items)


def fetch_error(status: int = 503) -> FetchError:
    return FetchError("https://example.test", f"HTTP {status}", status)


