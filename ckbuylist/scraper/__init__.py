"""CK Buylist: Scraper Layer"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class FilterSpec(BaseModel):
    """One tracked row of the Filters tab."""

    model_config = ConfigDict(frozen=True)

    edition: str = ""
    rarities: tuple[str, ...] = ()
    format: str | None = None
    sort_order: str = "price_desc"
    page_size: int = 100
    name_query: str | None = None
    include_foil: bool = True
    track: bool = False
    row_number: int | None = None


class CardRecord(BaseModel):
    """One observed buylist listing."""

    model_config = ConfigDict(frozen=True)

    name: str
    edition: str = ""
    rarity: str = ""
    price: Decimal | None = None
    condition: str | None = None
    collector_number: str | None = None
    foil: bool = False
    source: Literal["json", "dom"] = "dom"


class RawPage(BaseModel):
    """
    What a fetcher returns for one result page.

    ``json_items`` holds product-like objects captured from network responses
    during this page's navigation only. When non-empty they take priority over
    ``html`` for extraction; ``html`` is still kept for next-link checks and
    snapshots.
    """

    url: str
    html: str = ""
    json_items: list[dict[str, Any]] = Field(default_factory=list)


@runtime_checkable
class PageFetcher(Protocol):
    """Async context manager that owns one filter's fetch session."""

    async def __aenter__(self) -> PageFetcher: ...

    async def __aexit__(self, *args: Any) -> None: ...

    async def fetch_page(self, url: str) -> RawPage: ...
