"""
Tests for the Filters tab reader (ckbuylist/sheets/filters.py).

Covers:
- Row parsing: foil asymmetry, track gate, rarity cell, page size
- load_active_filters: tracked subset, last-attempt stamps
- Error mapping: read failure -> ConfigReadError, stamp failure -> WriteError
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ckbuylist.errors import ConfigReadError, WriteError
from ckbuylist.sheets.filters import FilterSource, parse_filter_row
from tests.fakes import FakeSheetsClient, make_http_error

# 2025-08-21 06:04:05 UTC is 2025-08-20 11:04:05 PM in Los Angeles
RUN_AT = datetime(2025, 8, 21, 6, 4, 5, tzinfo=timezone.utc)
STAMP = "2025-08-20 11:04:05 PM"


def _row(edition="", rarity="", fmt="", sort="", size="", name="", foil="", track="", last=""):
    return [edition, rarity, fmt, sort, size, name, foil, track, last]


# ---------------------------------------------------------------------------
# Row parsing
# ---------------------------------------------------------------------------


class TestParseFilterRow:
    @pytest.mark.parametrize(
        "cell,expected",
        [
            ("", True),
            ("yes", True),
            ("Yes", True),
            ("nope", True),
            ("n", True),
            ("No", False),
            (" NO ", False),
            ("no", False),
        ],
    )
    def test_foil_only_explicit_no_excludes(self, test_settings, cell, expected) -> None:
        """Only an exact 'no' (any case) turns foils off."""
        spec = parse_filter_row(_row(foil=cell), 2, test_settings)
        assert spec.include_foil is expected

    @pytest.mark.parametrize(
        "cell,expected",
        [("yes", True), ("YES", True), (" Yes ", True), ("y", False), ("", False), ("no", False)],
    )
    def test_track_requires_yes(self, test_settings, cell, expected) -> None:
        spec = parse_filter_row(_row(track=cell), 2, test_settings)
        assert spec.track is expected

    def test_full_row(self, test_settings) -> None:
        """Every column lands in its field."""
        spec = parse_filter_row(
            _row("Kaldheim", "Mythic, Rare", "modern", "name_asc", "50", "Toralf", "no", "yes"),
            7,
            test_settings,
        )
        assert spec.edition == "Kaldheim"
        assert spec.rarities == ("Mythic", "Rare")
        assert spec.format == "modern"
        assert spec.sort_order == "name_asc"
        assert spec.page_size == 50
        assert spec.name_query == "Toralf"
        assert spec.include_foil is False
        assert spec.track is True
        assert spec.row_number == 7

    def test_short_row_uses_defaults(self, test_settings) -> None:
        """Rows the API trimmed early fall back to defaults."""
        spec = parse_filter_row(["Kaldheim"], 3, test_settings)
        assert spec.rarities == ()
        assert spec.format is None
        assert spec.sort_order == "price_desc"
        assert spec.page_size == 100
        assert spec.include_foil is True
        assert spec.track is False

    def test_rarity_cell_dedupes_and_trims(self, test_settings) -> None:
        spec = parse_filter_row(_row(rarity=" Rare,,Mythic , Rare"), 2, test_settings)
        assert spec.rarities == ("Rare", "Mythic")

    @pytest.mark.parametrize("cell", ["abc", "0", "-5", "inf"])
    def test_bad_page_size_uses_default(self, test_settings, cell) -> None:
        spec = parse_filter_row(_row(size=cell), 2, test_settings)
        assert spec.page_size == 100

    def test_numeric_page_size_from_sheet(self, test_settings) -> None:
        """Sheets may hand numbers back as '25.0'."""
        assert parse_filter_row(_row(size="25.0"), 2, test_settings).page_size == 25


# ---------------------------------------------------------------------------
# FilterSource
# ---------------------------------------------------------------------------


@pytest.fixture
def filter_client() -> FakeSheetsClient:
    return FakeSheetsClient(
        {
            "Filters": [
                _row("Edition", "Rarity", "Format", "Sort", "Page Size", "Name", "Foil", "Track", "Last Attempt"),
                _row("Kaldheim", "Mythic", size="2", foil="No", track="Yes"),
                _row("Zendikar Rising", "Rare", track="no"),
                _row("Dominaria United", "Mythic,Rare", track="yes", last="old stamp"),
            ]
        }
    )


class TestLoadActiveFilters:
    def test_returns_tracked_rows_only(self, filter_client, test_settings) -> None:
        filters = FilterSource(filter_client, test_settings).load_active_filters(RUN_AT)
        assert [f.edition for f in filters] == ["Kaldheim", "Dominaria United"]
        assert [f.row_number for f in filters] == [2, 4]
        assert filters[0].include_foil is False
        assert filters[0].page_size == 2

    def test_reads_configured_range(self, filter_client, test_settings) -> None:
        FilterSource(filter_client, test_settings).load_active_filters(RUN_AT)
        assert filter_client.method_calls("get_values") == ["Filters!A2:I"]

    def test_stamps_tracked_rows_in_one_batch(self, filter_client, test_settings) -> None:
        """Tracked rows get the human stamp, untracked rows stay as they were."""
        FilterSource(filter_client, test_settings).load_active_filters(RUN_AT)

        batches = filter_client.method_calls("batch_update_values")
        assert len(batches) == 1
        data, option = batches[0]
        assert option == "RAW"
        assert [d["range"] for d in data] == ["Filters!I2", "Filters!I4"]

        assert filter_client.cell("Filters", "I2") == STAMP
        assert filter_client.cell("Filters", "I3") == ""
        assert filter_client.cell("Filters", "I4") == STAMP

    def test_no_tracked_rows_no_write(self, test_settings) -> None:
        client = FakeSheetsClient({"Filters": [_row("Edition"), _row("Kaldheim", track="no")]})
        assert FilterSource(client, test_settings).load_active_filters(RUN_AT) == []
        assert client.method_calls("batch_update_values") == []

    def test_read_failure_is_config_error(self, filter_client, test_settings) -> None:
        filter_client.fail_on["get_values"] = make_http_error(403)
        with pytest.raises(ConfigReadError):
            FilterSource(filter_client, test_settings).load_active_filters(RUN_AT)

    def test_stamp_failure_is_write_error(self, filter_client, test_settings) -> None:
        filter_client.fail_on["batch_update_values"] = make_http_error(500, "backend error")
        with pytest.raises(WriteError):
            FilterSource(filter_client, test_settings).load_active_filters(RUN_AT)

    def test_custom_tab_and_column(self, make_settings) -> None:
        cfg = make_settings(FILTERS_SHEET="My Filters", FILTERS_FIRST_ROW=3, FILTERS_LAST_ATTEMPT_COLUMN="J")
        client = FakeSheetsClient(
            {"My Filters": [["title"], _row("Edition"), _row("Kaldheim", track="yes")]}
        )
        filters = FilterSource(client, cfg).load_active_filters(RUN_AT)
        assert [f.row_number for f in filters] == [3]
        assert client.method_calls("get_values") == ["'My Filters'!A3:J"]
        assert client.cell("My Filters", "J3") == STAMP
