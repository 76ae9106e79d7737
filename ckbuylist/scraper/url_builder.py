"""
CK Buylist: Search URL Builder

Serializes a ``FilterSpec`` plus page number into a Card Kingdom buylist
search URL. Pure function, no I/O.
"""

from __future__ import annotations

from urllib.parse import urlencode

import structlog

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.scraper import FilterSpec
from ckbuylist.utils.rarity import normalize_rarities

logger = structlog.get_logger(__name__)


def build_filter_params(
    filter_spec: FilterSpec,
    page: int,
    settings: Settings | None = None,
) -> list[tuple[str, str]]:
    """
    Build the ordered query parameters for one result page.

    Args:
        filter_spec: Tracked filter row.
        page: 1-based page number.
        settings: Optional settings override.

    Returns:
        List of (key, value) pairs. Keys are unique.
    """
    cfg = settings or default_settings

    params: list[tuple[str, str]] = [
        ("filter[sort]", filter_spec.sort_order or cfg.DEFAULT_SORT),
        ("filter[search]", "mtg_advanced"),
        ("filter[singles]", "1"),
    ]
    if filter_spec.edition:
        params.append(("filter[edition]", filter_spec.edition))
    if filter_spec.name_query:
        params.append(("filter[name]", filter_spec.name_query))
    if filter_spec.format:
        params.append(("filter[format]", filter_spec.format))
    if filter_spec.include_foil is False:
        params.append(("filter[foil]", "0"))

    rarities = normalize_rarities(filter_spec.rarities, cfg.CK_NORMALIZE_RARITY)
    for i, rarity in enumerate(rarities):
        params.append((f"filter[rarity][{i}]", rarity))

    params.append(("page_size", str(filter_spec.page_size or cfg.DEFAULT_PAGE_SIZE)))
    params.append(("page", str(page)))
    return params


def build_filter_url(
    filter_spec: FilterSpec,
    page: int = 1,
    settings: Settings | None = None,
) -> str:
    """Return the full search URL for ``filter_spec`` at ``page``."""
    cfg = settings or default_settings
    params = build_filter_params(filter_spec, page, cfg)
    url = f"{cfg.CK_BASE_URL}?{urlencode(params)}"

    logger.debug(
        "url_built",
        edition=filter_spec.edition,
        page=page,
        rarities=[v for k, v in params if k.startswith("filter[rarity]")],
        include_foil=filter_spec.include_foil,
        source="url_builder",
    )
    return url
