"""
CK Buylist: Item Extractor

Turns a ``RawPage`` into ``CardRecord``s. Intercepted JSON wins when the
page has any; otherwise the markup is parsed with BeautifulSoup using
ordered selector candidates per field (first non-empty match wins).

A listing without a name is dropped. Every other field degrades to empty or
None instead of failing the page.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

import structlog
from bs4 import BeautifulSoup, Tag

from ckbuylist.scraper import CardRecord, RawPage
from ckbuylist.scraper.network_intercept import NAME_KEYS, SET_KEYS
from ckbuylist.scraper.pricing import PricePolicy, parse_price_text

logger = structlog.get_logger(__name__)

ITEM_SELECTOR = "div.itemContentWrapper, div.productItemView, div.productItem"

_NAME_SELECTORS = ("span.productDetailTitle a", "a.productDetailTitle", ".productDetailTitle")
_EDITION_SELECTORS = ("div.productDetailSet", ".productDetailSet", ".setName")
_RARITY_SELECTORS = ("div.productDetailRarity", ".productDetailRarity", ".rarity")
_CONDITION_SELECTORS = ("div.productDetailCondition", ".productDetailCondition", ".condition")
_COLLECTOR_SELECTORS = ("div.productDetailCollectorNumber", ".productDetailCollectorNumber", ".collectorNumber")

_RARITY_KEYS = ("rarity", "printingRarity")
_COLLECTOR_KEYS = ("collectorNumber", "number")

# "Kaldheim (M) FOIL" -> edition, rarity code, foil marker
_SET_LABEL = re.compile(r"^(?P<edition>.+?)\s*\((?P<rarity>[MRUCLS])\)\s*(?P<foil>FOIL)?\s*$")


class Extractor:
    """
    Extracts normalized card records from fetched pages.

    Usage:
        extractor = Extractor(PricePolicy(PriceMode.CREDIT))
        records = extractor.extract(raw_page)
    """

    def __init__(self, price_policy: PricePolicy | None = None) -> None:
        self.price_policy = price_policy or PricePolicy()

    def extract(self, raw_page: RawPage) -> list[CardRecord]:
        if raw_page.json_items:
            records = records_from_json(raw_page.json_items, self.price_policy)
            logger.debug("extractor_using_json", url=raw_page.url, items=len(records), source="extractor")
            return records

        records = records_from_html(raw_page.html, self.price_policy)
        logger.debug("extractor_using_dom", url=raw_page.url, items=len(records), source="extractor")
        return records


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def records_from_json(items: list[dict[str, Any]], policy: PricePolicy) -> list[CardRecord]:
    records: list[CardRecord] = []
    for item in items:
        record = _record_from_json(item, policy)
        if record is not None:
            records.append(record)
    return records


def _record_from_json(item: dict[str, Any], policy: PricePolicy) -> CardRecord | None:
    name = _first_text(item, NAME_KEYS)
    if not name:
        return None

    edition = _first_text(item, SET_KEYS)
    rarity = _first_text(item, _RARITY_KEYS)
    foil = bool(item.get("foil") or item.get("isFoil"))
    edition, rarity, label_foil = split_set_label(edition, rarity)

    return CardRecord(
        name=name,
        edition=edition,
        rarity=rarity,
        price=policy.pick_json_price(item),
        condition=_first_text(item, ("condition",)) or None,
        collector_number=_first_text(item, _COLLECTOR_KEYS) or None,
        foil=foil or label_foil,
        source="json",
    )


def _first_text(item: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, dict):
            value = value.get("name")
        if value is None or isinstance(value, (list, dict)):
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


# ---------------------------------------------------------------------------
# DOM
# ---------------------------------------------------------------------------


def records_from_html(html: str, policy: PricePolicy) -> list[CardRecord]:
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    records: list[CardRecord] = []
    for block in soup.select(ITEM_SELECTOR):
        # Wrapper around another listing block; the inner one is parsed.
        if block.select_one(ITEM_SELECTOR) is not None:
            continue
        record = _record_from_block(block, policy)
        if record is not None:
            records.append(record)
    return records


def _record_from_block(block: Tag, policy: PricePolicy) -> CardRecord | None:
    name = _select_text(block, _NAME_SELECTORS)
    if not name:
        return None

    edition, rarity, foil = split_set_label(
        _select_text(block, _EDITION_SELECTORS),
        _select_text(block, _RARITY_SELECTORS),
    )

    return CardRecord(
        name=name,
        edition=edition,
        rarity=rarity,
        price=_select_price(block, policy.dom_selectors),
        condition=_select_text(block, _CONDITION_SELECTORS) or None,
        collector_number=_select_text(block, _COLLECTOR_SELECTORS) or None,
        foil=foil,
        source="dom",
    )


def _select_text(block: Tag, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        node = block.select_one(selector)
        if node is None:
            continue
        text = node.get_text(" ", strip=True)
        if text:
            return text
    return ""


def _select_price(block: Tag, selectors: tuple[str, ...]) -> Decimal | None:
    for selector in selectors:
        node = block.select_one(selector)
        if node is None:
            continue
        text = _price_node_text(node)
        if text:
            return parse_price_text(text)
    return None


def _price_node_text(node: Tag) -> str:
    """Text of a price container, joining separate dollar/cents spans."""
    dollars = node.select_one(".sellDollarAmount")
    if dollars is not None:
        cents = node.select_one(".sellCentsAmount")
        dollar_text = dollars.get_text(strip=True)
        cent_text = cents.get_text(strip=True) if cents is not None else ""
        if dollar_text and cent_text:
            return f"{dollar_text.rstrip('.')}.{cent_text.lstrip('.')}"
        if dollar_text:
            return dollar_text

    text = node.get_text("", strip=True)
    if text:
        return text
    for attr in ("data-credit-price", "data-usd-price"):
        value = node.get(attr)
        if value:
            return str(value)
    return ""


def split_set_label(edition: str, rarity: str) -> tuple[str, str, bool]:
    """
    Split a combined set label such as 'Kaldheim (M) FOIL'.

    Only applied when no separate rarity was found; otherwise the edition is
    returned as-is.
    """
    if rarity:
        return edition, rarity, False
    match = _SET_LABEL.match(edition or "")
    if match is None:
        return edition, rarity, False
    return match.group("edition").strip(), match.group("rarity"), bool(match.group("foil"))
