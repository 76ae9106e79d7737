"""
CK Buylist: Configuration & Constants

Every URL, sheet range, timeout and toggle lives here. Components take a
``Settings`` instance at construction and fall back to the module singleton.

Usage:
    from ckbuylist.config import settings
"""

from __future__ import annotations

from enum import Enum

from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FetchStrategy(str, Enum):
    """How result pages are retrieved."""
    STATIC = "static"     # plain HTTP GET + HTML parse
    BROWSER = "browser"   # headless Chromium, JSON sniffing + rendered DOM


class PriceMode(str, Enum):
    """Which buylist price column a record carries."""
    CASH = "cash"
    CREDIT = "credit"
    BOTH = "both"         # cash, falling back to store credit


class TimestampFormat(str, Enum):
    """How the run timestamp is rendered into the sheet header."""
    STRING = "string"     # "2025-08-20 11:04:05 PM"
    SERIAL = "serial"     # Sheets date-time serial number


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for the buylist tracker.

    Loads from environment variables (and ``.env``) with fallback defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # -----------------------------------------------------------------------
    # Google Sheets
    # -----------------------------------------------------------------------
    SPREADSHEET_ID: str = ""
    GOOGLE_APPLICATION_CREDENTIALS: str = ""   # service account key file path
    GOOGLE_CREDENTIALS_JSON: str = ""          # inline JSON or base64 blob (CI)

    FILTERS_SHEET: str = "Filters"
    FILTERS_FIRST_ROW: int = 2
    FILTERS_LAST_ATTEMPT_COLUMN: str = "I"

    OUTPUT_SHEET: str = "CK_buylist_scraper"
    ROW_LOG_SHEET: str = ""                    # empty disables the row log tab

    # Identity prefix written to the output sheet, in column order
    SHEET_IDENTITY_FIELDS: str = "name,edition"
    # Fields used to de-duplicate listings within a run
    IDENTITY_FIELDS: str = "name,edition,rarity"

    TIMESTAMP_FORMAT: TimestampFormat = TimestampFormat.STRING
    TIMEZONE: str = "America/Los_Angeles"

    # -----------------------------------------------------------------------
    # Card Kingdom query surface
    # -----------------------------------------------------------------------
    CK_BASE_URL: str = "https://www.cardkingdom.com/purchasing/mtg_singles"
    DEFAULT_SORT: str = "price_desc"
    DEFAULT_PAGE_SIZE: int = 100

    # -----------------------------------------------------------------------
    # Fetching
    # -----------------------------------------------------------------------
    FETCH_STRATEGY: FetchStrategy = FetchStrategy.BROWSER
    PRICE_MODE: PriceMode = PriceMode.CREDIT
    USER_AGENT: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )
    HTTP_TIMEOUT_SECONDS: float = 30.0
    NAVIGATION_TIMEOUT_MS: int = 60_000
    SELECTOR_TIMEOUT_MS: int = 4_000
    CONTENT_SELECTOR: str = ".itemContentWrapper, .productItem, .productGrid, .productItemView"
    PAGE_DELAY_MS: int = 300
    REQUIRE_NEXT_LINK: bool = False
    HEADLESS: bool = True

    # -----------------------------------------------------------------------
    # Debug toggles
    # -----------------------------------------------------------------------
    CK_DEBUG: bool = False
    CK_DUMP: bool = False               # save first page's rendered HTML
    CK_OPEN: bool = False               # open the saved snapshot
    CK_NORMALIZE_RARITY: bool = False   # map "m"/"mythic rare" to "Mythic" etc.
    EXPECTED_CARD_NAMES: str = ""       # semicolon-separated (names contain commas)
    LOG_LEVEL: str = "INFO"

    # -----------------------------------------------------------------------
    # Relational sink (disabled when empty)
    # -----------------------------------------------------------------------
    DATABASE_URL: str = ""

    @property
    def identity_fields(self) -> tuple[str, ...]:
        return _split_csv(self.IDENTITY_FIELDS)

    @property
    def sheet_identity_fields(self) -> tuple[str, ...]:
        return _split_csv(self.SHEET_IDENTITY_FIELDS)

    @property
    def expected_card_names(self) -> tuple[str, ...]:
        return _split_csv(self.EXPECTED_CARD_NAMES, ";")


def _split_csv(value: str, sep: str = ",") -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(sep) if part.strip())


# Singleton instance
settings = Settings()
