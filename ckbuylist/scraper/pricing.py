"""
CK Buylist: Price selection policy

Card Kingdom quotes two buylist prices per card: USD cash and store credit.
A ``PricePolicy`` fixes which one a record carries and the ordered candidate
fields / selectors used to find it. Never use float for money.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from ckbuylist.config import PriceMode

# Ordered JSON paths. Structured sub-fields come before flat fields.
_CASH_JSON_PATHS: tuple[tuple[str, ...], ...] = (
    ("price", "usd"),
    ("price", "cash"),
    ("usdSellPrice",),
    ("cashSellPrice",),
    ("sellPrice",),
    ("buyPrice",),
    ("prices", "usd"),
    ("usd",),
    ("price",),
)

_CREDIT_JSON_PATHS: tuple[tuple[str, ...], ...] = (
    ("price", "credit"),
    ("creditSellPrice",),
    ("credit_price",),
    ("credit",),
    ("prices", "credit"),
    ("price", "storeCredit"),
    ("storeCredit",),
)

# Ordered DOM price containers, searched inside one item block.
_CASH_SELECTORS: tuple[str, ...] = (
    ".usdSellPrice",
    ".cashSellPrice",
    ".sellPrice",
    "[data-usd-price]",
)

_CREDIT_SELECTORS: tuple[str, ...] = (
    ".creditSellPrice",
    "[data-credit-price]",
    ".buylist-credit",
)

_NON_PRICE_CHARS = re.compile(r"[^\d.]")


class PricePolicy:
    """
    Candidate lists for one ``PriceMode``.

    Usage:
        policy = PricePolicy(PriceMode.CREDIT)
        price = policy.pick_json_price(item)
    """

    def __init__(self, mode: PriceMode = PriceMode.CREDIT) -> None:
        self.mode = mode
        if mode is PriceMode.CASH:
            self.json_paths = _CASH_JSON_PATHS
            self.dom_selectors = _CASH_SELECTORS
        elif mode is PriceMode.CREDIT:
            self.json_paths = _CREDIT_JSON_PATHS
            self.dom_selectors = _CREDIT_SELECTORS
        else:
            self.json_paths = _CASH_JSON_PATHS + _CREDIT_JSON_PATHS
            self.dom_selectors = _CASH_SELECTORS + _CREDIT_SELECTORS

    def pick_json_price(self, item: dict[str, Any]) -> Decimal | None:
        """Return the first candidate field that holds a finite number."""
        for path in self.json_paths:
            price = safe_decimal(_resolve_path(item, path))
            if price is not None:
                return price
        return None


def _resolve_path(item: Any, path: tuple[str, ...]) -> Any:
    value = item
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def safe_decimal(value: Any) -> Decimal | None:
    """
    Convert a JSON scalar to a finite Decimal.

    Strings must be plain numbers here; currency text is handled by
    ``parse_price_text``. Booleans, containers and blanks yield None.
    """
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def parse_price_text(text: str | None) -> Decimal | None:
    """
    Parse price text like '$12.34' or '1,234.50'.

    Everything except digits and the decimal point is stripped first, so
    'Out of Stock' and '' both yield None.
    """
    if not text:
        return None
    cleaned = _NON_PRICE_CHARS.sub("", text)
    if not cleaned.strip("."):
        return None
    try:
        return Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None
