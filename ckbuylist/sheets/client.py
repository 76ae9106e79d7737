"""
CK Buylist: Google Sheets Client

Thin wrapper over the Sheets v4 values API so the filter source and writer
can be exercised against an in-memory fake. The underlying client is
blocking; async callers go through ``asyncio.to_thread``.

Credentials come from either a key file path (local runs) or an inline
service-account blob (CI), never from a hardcoded path.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build

from ckbuylist.config import Settings, settings as default_settings
from ckbuylist.errors import ConfigReadError

logger = structlog.get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _decode_credentials_blob(blob: str) -> dict[str, Any]:
    """Accept raw JSON or base64-encoded JSON."""
    text = blob.strip()
    if not text.startswith("{"):
        try:
            text = base64.b64decode(text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ConfigReadError("GOOGLE_CREDENTIALS_JSON is neither JSON nor base64 JSON") from e
    try:
        info = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigReadError("GOOGLE_CREDENTIALS_JSON is not valid JSON") from e
    if not isinstance(info, dict):
        raise ConfigReadError("GOOGLE_CREDENTIALS_JSON must be a JSON object")
    return info


def load_credentials(settings: Settings | None = None) -> service_account.Credentials:
    """Service-account credentials from the inline blob, else the key file."""
    cfg = settings or default_settings

    try:
        if cfg.GOOGLE_CREDENTIALS_JSON:
            logger.info("sheets_credentials_inline", source="sheets_client")
            return service_account.Credentials.from_service_account_info(
                _decode_credentials_blob(cfg.GOOGLE_CREDENTIALS_JSON),
                scopes=SCOPES,
            )
        if cfg.GOOGLE_APPLICATION_CREDENTIALS:
            logger.info(
                "sheets_credentials_file",
                path=cfg.GOOGLE_APPLICATION_CREDENTIALS,
                source="sheets_client",
            )
            return service_account.Credentials.from_service_account_file(
                cfg.GOOGLE_APPLICATION_CREDENTIALS,
                scopes=SCOPES,
            )
    except (OSError, ValueError) as e:
        raise ConfigReadError(f"Could not load Google credentials: {e}") from e

    raise ConfigReadError(
        "No Google credentials configured: set GOOGLE_APPLICATION_CREDENTIALS or GOOGLE_CREDENTIALS_JSON"
    )


class SheetsClient:
    """
    Values / batchUpdate calls against one spreadsheet.

    Usage:
        client = SheetsClient.from_settings()
        rows = client.get_values("Filters!A2:I")
    """

    def __init__(self, service: Any, spreadsheet_id: str) -> None:
        self._service = service
        self.spreadsheet_id = spreadsheet_id

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SheetsClient:
        cfg = settings or default_settings
        if not cfg.SPREADSHEET_ID:
            raise ConfigReadError("SPREADSHEET_ID is not set")
        service = build("sheets", "v4", credentials=load_credentials(cfg), cache_discovery=False)
        return cls(service, cfg.SPREADSHEET_ID)

    def get_values(self, range_: str) -> list[list[Any]]:
        result = (
            self._service.spreadsheets()
            .values()
            .get(spreadsheetId=self.spreadsheet_id, range=range_)
            .execute()
        )
        return result.get("values", [])

    def update_values(
        self,
        range_: str,
        values: list[list[Any]],
        value_input_option: str = "RAW",
    ) -> dict[str, Any]:
        return (
            self._service.spreadsheets()
            .values()
            .update(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueInputOption=value_input_option,
                body={"values": values},
            )
            .execute()
        )

    def batch_update_values(
        self,
        data: list[dict[str, Any]],
        value_input_option: str = "RAW",
    ) -> dict[str, Any]:
        return (
            self._service.spreadsheets()
            .values()
            .batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"valueInputOption": value_input_option, "data": data},
            )
            .execute()
        )

    def append_values(
        self,
        range_: str,
        values: list[list[Any]],
        value_input_option: str = "RAW",
    ) -> dict[str, Any]:
        return (
            self._service.spreadsheets()
            .values()
            .append(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueInputOption=value_input_option,
                insertDataOption="INSERT_ROWS",
                body={"values": values},
            )
            .execute()
        )

    def get_sheet_properties(self, title: str) -> dict[str, Any] | None:
        """Properties of the tab called ``title``, or None if it does not exist."""
        result = (
            self._service.spreadsheets()
            .get(spreadsheetId=self.spreadsheet_id, fields="sheets.properties")
            .execute()
        )
        for sheet in result.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == title:
                return props
        return None

    def batch_update(self, requests: list[dict[str, Any]]) -> dict[str, Any]:
        return (
            self._service.spreadsheets()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body={"requests": requests})
            .execute()
        )
