"""
CK Buylist: A1 notation helpers
"""

from __future__ import annotations

import re
from typing import NamedTuple

_UPDATED_RANGE = re.compile(
    r"^(?P<sheet>.*?)!\$?(?P<col1>[A-Z]+)\$?(?P<row1>\d+)(?::\$?(?P<col2>[A-Z]+)\$?(?P<row2>\d+))?$",
    re.IGNORECASE,
)
_PLAIN_TITLE = re.compile(r"^[A-Za-z0-9_]+$")


class A1Range(NamedTuple):
    sheet: str
    col1: str
    row1: int
    col2: str
    row2: int


def column_letter(index: int) -> str:
    """1-based column index to letters: 1 -> 'A', 27 -> 'AA'."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def quote_sheet(title: str) -> str:
    """Quote a tab title for use in a range when it needs it."""
    if _PLAIN_TITLE.match(title):
        return title
    return "'" + title.replace("'", "''") + "'"


def _unquote_sheet(title: str) -> str:
    if len(title) >= 2 and title[0] == title[-1] == "'":
        return title[1:-1].replace("''", "'")
    return title


def parse_updated_range(a1: str | None) -> A1Range | None:
    """
    Parse an API ``updatedRange`` such as "'My Tab'!A101:B120".

    Returns None for anything that is not a sheet-qualified cell range.
    """
    if not a1:
        return None
    match = _UPDATED_RANGE.match(str(a1).strip())
    if match is None:
        return None
    col1 = match.group("col1").upper()
    row1 = int(match.group("row1"))
    return A1Range(
        sheet=_unquote_sheet(match.group("sheet")),
        col1=col1,
        row1=row1,
        col2=(match.group("col2") or col1).upper(),
        row2=int(match.group("row2") or row1),
    )
