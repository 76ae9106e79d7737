"""
Tests for pagination and de-duplication (ckbuylist/scraper/paginator.py).

Covers:
- Stop rules: empty page, repeated page, short page, missing next link
- Cross-page de-duplication by identity key
- FetchError on the first page vs. later pages
- Page-1 snapshot and the inter-page delay
- A two-page Kaldheim filter end to end
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest

from ckbuylist.errors import FetchError
from ckbuylist.scraper import FilterSpec, RawPage
from ckbuylist.scraper.diagnostics import HtmlSnapshotSink
from ckbuylist.scraper.extractor import Extractor
from ckbuylist.scraper.identity import IdentityKeyPolicy
from ckbuylist.scraper.paginator import Paginator, has_next_link
from ckbuylist.scraper.pricing import PricePolicy
from tests.fakes import ScriptedFetcher, fetch_error, json_page

A = ("Alrund's Epiphany", "Kaldheim", "M", "20.00")
B = ("Battle Mammoth", "Kaldheim", "M", "9.50")
C = ("Cosima, God of the Voyage", "Kaldheim", "R", "4.00")


def _paginator(fetcher, settings, **kwargs) -> Paginator:
    kwargs.setdefault("delay", AsyncMock())
    return Paginator(fetcher, Extractor(PricePolicy()), settings=settings, **kwargs)


class TestStopRules:
    @pytest.mark.asyncio
    async def test_short_page_stops(self, test_settings) -> None:
        fetcher = ScriptedFetcher({1: json_page(A, B, C)})
        records = await _paginator(fetcher, test_settings).collect(FilterSpec(page_size=100))
        assert len(records) == 3
        assert len(fetcher.urls) == 1

    @pytest.mark.asyncio
    async def test_empty_page_stops(self, test_settings) -> None:
        fetcher = ScriptedFetcher({1: json_page(A, B)})
        records = await _paginator(fetcher, test_settings).collect(FilterSpec(page_size=2))
        assert [r.name for r in records] == [A[0], B[0]]
        assert len(fetcher.urls) == 2

    @pytest.mark.asyncio
    async def test_first_page_empty(self, test_settings) -> None:
        fetcher = ScriptedFetcher({})
        assert await _paginator(fetcher, test_settings).collect(FilterSpec()) == []
        assert len(fetcher.urls) == 1

    @pytest.mark.asyncio
    async def test_repeated_page_stops(self, test_settings) -> None:
        """A server that ignores the page number serves the same page forever."""
        fetcher = ScriptedFetcher({1: json_page(A, B), 2: json_page(A, B), 3: json_page(C)})
        records = await _paginator(fetcher, test_settings).collect(FilterSpec(page_size=2))
        assert [r.name for r in records] == [A[0], B[0]]
        assert len(fetcher.urls) == 2

    @pytest.mark.asyncio
    async def test_next_link_required(self, make_settings) -> None:
        cfg = make_settings(REQUIRE_NEXT_LINK=True)
        page1 = RawPage(url="u", html='<a href="?page=2">Next</a>', json_items=json_page(A, B).json_items)
        page2 = RawPage(url="u", html="<p>no links</p>", json_items=json_page(C, ("D", "Kaldheim", "R")).json_items)
        fetcher = ScriptedFetcher({1: page1, 2: page2, 3: json_page(("E", "Kaldheim", "C"))})
        records = await _paginator(fetcher, cfg).collect(FilterSpec(page_size=2))
        assert len(records) == 4
        assert len(fetcher.urls) == 2

    @pytest.mark.asyncio
    async def test_next_link_ignored_by_default(self, test_settings) -> None:
        fetcher = ScriptedFetcher({1: json_page(A, B), 2: json_page(C)})
        records = await _paginator(fetcher, test_settings).collect(FilterSpec(page_size=2))
        assert len(records) == 3


class TestHasNextLink:
    def test_link_present(self) -> None:
        html = '<a href="/purchasing/mtg_singles?filter%5Bsort%5D=price_desc&page=3">3</a>'
        assert has_next_link(RawPage(url="u", html=html), 2) is True

    def test_link_absent(self) -> None:
        assert has_next_link(RawPage(url="u", html='<a href="?page=2">2</a>'), 2) is False
        assert has_next_link(RawPage(url="u"), 1) is False


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_overlap_between_pages(self, test_settings) -> None:
        """A listing repeated on the next page is kept once, first sighting wins."""
        fetcher = ScriptedFetcher({1: json_page(A, B), 2: json_page(("Battle Mammoth", " kaldheim ", "m", "1.00"), C)})
        records = await _paginator(fetcher, test_settings).collect(FilterSpec(page_size=2))
        assert [r.name for r in records] == [A[0], B[0], C[0]]
        assert records[1].price == Decimal("9.50")
        assert len(fetcher.urls) == 3

    @pytest.mark.asyncio
    async def test_identity_fields_decide_sameness(self, test_settings) -> None:
        """With rarity out of the key, two rarities of one name collapse."""
        fetcher = ScriptedFetcher({1: json_page(("Forest", "Kaldheim", "C"), ("Forest", "Kaldheim", "L"))})
        default = await _paginator(fetcher, test_settings).collect(FilterSpec())
        narrow = await _paginator(
            ScriptedFetcher(fetcher.pages), test_settings, identity=IdentityKeyPolicy(("name", "edition"))
        ).collect(FilterSpec())
        assert len(default) == 2
        assert len(narrow) == 1


class TestFetchErrors:
    @pytest.mark.asyncio
    async def test_first_page_error_propagates(self, test_settings) -> None:
        fetcher = ScriptedFetcher({1: fetch_error(503)})
        with pytest.raises(FetchError):
            await _paginator(fetcher, test_settings).collect(FilterSpec())

    @pytest.mark.asyncio
    async def test_later_page_error_keeps_partial(self, test_settings) -> None:
        fetcher = ScriptedFetcher({1: json_page(A, B), 2: fetch_error(502)})
        records = await _paginator(fetcher, test_settings).collect(FilterSpec(page_size=2))
        assert [r.name for r in records] == [A[0], B[0]]


class TestPacingAndDiagnostics:
    @pytest.mark.asyncio
    async def test_delay_between_pages_only(self, test_settings) -> None:
        delay = AsyncMock()
        fetcher = ScriptedFetcher({1: json_page(A, B), 2: json_page(C)})
        await _paginator(fetcher, test_settings, delay=delay).collect(FilterSpec(page_size=2))
        assert delay.await_count == 1

    @pytest.mark.asyncio
    async def test_snapshot_first_page_only(self, test_settings) -> None:
        sink = MagicMock()
        page1 = RawPage(url="u", html="<p>one</p>", json_items=json_page(A, B).json_items)
        fetcher = ScriptedFetcher({1: page1, 2: json_page(C)})
        await _paginator(fetcher, test_settings, diagnostics=sink).collect(
            FilterSpec(edition="Kaldheim", page_size=2)
        )
        sink.record.assert_called_once_with("Kaldheim", 1, "<p>one</p>", None)

    @pytest.mark.asyncio
    async def test_unencodable_snapshot_keeps_records(self, test_settings, tmp_path) -> None:
        sink = HtmlSnapshotSink(directory=tmp_path, run_id="run1")
        page1 = RawPage.model_construct(url="u", html="<p>\ud800</p>", json_items=json_page(A).json_items)
        fetcher = ScriptedFetcher({1: page1})

        records = await _paginator(fetcher, test_settings, diagnostics=sink).collect(
            FilterSpec(edition="Kaldheim", page_size=100, row_number=4)
        )

        assert [r.name for r in records] == [A[0]]
        assert (tmp_path / "ck_kaldheim_r4_run1_p1.html").exists()


class TestKaldheimEndToEnd:
    @pytest.mark.asyncio
    async def test_two_pages(self, test_settings) -> None:
        """Mythic non-foil Kaldheim, page size 2: two fetches, three unique records."""
        spec = FilterSpec(edition="Kaldheim", rarities=("Mythic",), include_foil=False, page_size=2)
        fetcher = ScriptedFetcher({1: json_page(A, B), 2: json_page(("Toralf, God of Fury", "Kaldheim", "M", "3.10"))})

        records = await _paginator(fetcher, test_settings).collect(spec)

        assert len(fetcher.urls) == 2
        assert [r.name for r in records] == [A[0], B[0], "Toralf, God of Fury"]
        for page_num, url in enumerate(fetcher.urls, start=1):
            q = parse_qs(urlsplit(url).query)
            assert q["filter[edition]"] == ["Kaldheim"]
            assert q["filter[rarity][0]"] == ["Mythic"]
            assert q["filter[foil]"] == ["0"]
            assert q["page_size"] == ["2"]
            assert q["page"] == [str(page_num)]
