"""
CK Buylist: Error taxonomy

Render timeouts and parse anomalies have no exception type: they degrade to
"no content yet" and ``None`` prices instead of raising.
"""

from __future__ import annotations


class CKBuylistError(Exception):
    """Base class for all buylist tracker errors."""


class ConfigReadError(CKBuylistError):
    """Filter range unreadable, credentials missing, or a target tab is absent. Fatal."""


class FetchError(CKBuylistError):
    """Non-2xx response or network failure while fetching a result page."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{reason} ({url})")


class WriteError(CKBuylistError):
    """The spreadsheet backend rejected a write. Fatal to the sheet step."""
