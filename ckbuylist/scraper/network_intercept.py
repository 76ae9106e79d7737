"""
CK Buylist: Network Response Interception

Card Kingdom's buylist pages hydrate from XHR/fetch JSON. Capturing those
responses gives richer data than the rendered DOM, so the browser fetcher
listens for them during each navigation and hands the product-like objects
to the extractor.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

NAME_KEYS = ("name", "productName", "title")
SET_KEYS = ("edition", "productSet", "setName", "set")
_CONTAINER_KEYS = ("items", "results", "products", "data")


def is_product_like(item: Any) -> bool:
    """Duck-typed product check: a name-like key and a set-like key, both truthy."""
    if not isinstance(item, dict):
        return False
    return any(item.get(k) for k in NAME_KEYS) and any(item.get(k) for k in SET_KEYS)


def find_product_items(body: Any) -> list[dict[str, Any]]:
    """
    Pull product-like objects out of a decoded JSON body.

    The body itself may be the array, or the array may sit under one of
    ``items``, ``results``, ``products`` or ``data``.
    """
    arrays: list[list[Any]] = []
    if isinstance(body, list):
        arrays.append(body)
    elif isinstance(body, dict):
        for key in _CONTAINER_KEYS:
            value = body.get(key)
            if isinstance(value, list):
                arrays.append(value)

    products: list[dict[str, Any]] = []
    for array in arrays:
        products.extend(item for item in array if is_product_like(item))
    return products


class JsonResponseCollector:
    """
    Collects product JSON from a Playwright page's responses.

    Usage:
        collector = JsonResponseCollector()
        collector.attach(page)
        await page.goto(url)
        items = await collector.drain()
    """

    def __init__(self) -> None:
        self._batches: list[list[dict[str, Any]]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._generation = 0

    def attach(self, page: Any) -> None:
        page.on("response", self._on_response)

    def detach(self, page: Any) -> None:
        page.remove_listener("response", self._on_response)

    def clear(self) -> None:
        """
        Drop anything captured so far (call before each navigation).

        Handlers still reading an earlier response discard their result.
        """
        self._generation += 1
        self._batches.clear()

    def _on_response(self, response: Any) -> None:
        task = asyncio.ensure_future(self.handle_response(response, self._generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle_response(self, response: Any, generation: int | None = None) -> None:
        """
        Inspect one response and keep its product items, if any.

        ``generation`` is the navigation the response arrived during; the
        items are dropped when ``clear()`` has been called since.
        """
        content_type = (response.headers.get("content-type") or "").lower()
        if "application/json" not in content_type:
            return
        try:
            body = await response.json()
        except Exception as e:
            # Redirects, empty bodies and aborted requests all land here.
            logger.debug(
                "network_intercept_unreadable_body",
                url=response.url,
                error=str(e),
                source="network_intercept",
            )
            return

        if generation is not None and generation != self._generation:
            logger.debug("network_intercept_stale_response", url=response.url, source="network_intercept")
            return

        products = find_product_items(body)
        if products:
            logger.debug(
                "network_intercept_products",
                url=response.url,
                items=len(products),
                source="network_intercept",
            )
            self._batches.append(products)

    async def drain(self) -> list[dict[str, Any]]:
        """Wait for in-flight handlers, then return and clear everything captured."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        items = [item for batch in self._batches for item in batch]
        self._batches.clear()
        return items
