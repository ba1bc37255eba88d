"""Thin wrapper over the Google Sheets workbook that mirrors attendance.

The workbook is an external collaborator: every call may fail, and callers
decide whether a failure matters. Missing configuration is not a failure; it
means mirroring is switched off and :func:`get_sheets_client` returns ``None``.
"""

from __future__ import annotations

import json
import logging
from typing import Sequence

import gspread
from flask import current_app
from google.oauth2.service_account import Credentials

from ..constants import SHEET_ALIASES

logger = logging.getLogger("presensi.sheets")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]
TOKEN_URI = "https://oauth2.googleapis.com/token"
FULL_RANGE = "A:Z"


class SheetsError(RuntimeError):
    """Raised when the spreadsheet service rejects or fails a request."""


class SheetsClient:
    def __init__(self, spreadsheet):
        self.spreadsheet = spreadsheet

    def resolve_worksheet(self, preferred: str):
        """Return the tab named ``preferred`` or one of its aliases.

        The first existing candidate wins; when none exists the preferred tab
        is created.
        """

        candidates = [preferred, *SHEET_ALIASES.get(preferred, [])]
        try:
            by_title = {ws.title: ws for ws in self.spreadsheet.worksheets()}
        except Exception as exc:
            logger.warning("[SHEETS] list_tabs failed: %s", exc)
            by_title = {}
        for name in candidates:
            if name in by_title:
                return by_title[name]
        try:
            logger.info("[SHEETS] add_tab title=%s", preferred)
            return self.spreadsheet.add_worksheet(title=preferred, rows=1000, cols=26)
        except Exception as exc:
            raise SheetsError(f"cannot open or create tab {preferred!r}: {exc}") from exc

    def append_row(self, sheet_name: str, values: Sequence) -> None:
        worksheet = self.resolve_worksheet(sheet_name)
        try:
            worksheet.append_row(
                ["" if v is None else v for v in values], value_input_option="RAW"
            )
        except Exception as exc:
            raise SheetsError(f"append to {sheet_name!r} failed: {exc}") from exc

    def replace_values(self, sheet_name: str, values: Sequence[Sequence]) -> None:
        """Clear the tab and write ``values`` starting at A1."""
        worksheet = self.resolve_worksheet(sheet_name)
        try:
            worksheet.batch_clear([FULL_RANGE])
            if values:
                worksheet.update(
                    range_name="A1",
                    values=[list(row) for row in values],
                    value_input_option="RAW",
                )
        except Exception as exc:
            raise SheetsError(f"replace of {sheet_name!r} failed: {exc}") from exc

    def read_values(self, sheet_name: str, cell_range: str = FULL_RANGE) -> list[list[str]]:
        worksheet = self.resolve_worksheet(sheet_name)
        try:
            return [list(row) for row in worksheet.get_values(cell_range)]
        except Exception as exc:
            raise SheetsError(f"read of {sheet_name!r} failed: {exc}") from exc


def _service_account_info(config) -> dict | None:
    raw_json = config.get("GOOGLE_SERVICE_ACCOUNT_JSON")
    if raw_json:
        try:
            return json.loads(raw_json)
        except json.JSONDecodeError as exc:
            raise SheetsError("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON") from exc
    email = config.get("GOOGLE_SERVICE_ACCOUNT_EMAIL")
    key = config.get("GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY")
    if not email or not key:
        return None
    return {
        "type": "service_account",
        "client_email": email,
        "private_key": key.replace("\\n", "\n"),
        "token_uri": TOKEN_URI,
    }


def sheets_configured(config=None) -> bool:
    config = config if config is not None else current_app.config
    has_credentials = bool(
        config.get("GOOGLE_SERVICE_ACCOUNT_JSON")
        or (
            config.get("GOOGLE_SERVICE_ACCOUNT_EMAIL")
            and config.get("GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY")
        )
    )
    return bool(config.get("GOOGLE_SHEETS_SPREADSHEET_ID") and has_credentials)


def get_sheets_client() -> SheetsClient | None:
    config = current_app.config
    if not sheets_configured(config):
        return None
    info = _service_account_info(config)
    try:
        creds = Credentials.from_service_account_info(info, scopes=SCOPES)
        client = gspread.authorize(creds)
        spreadsheet = client.open_by_key(config["GOOGLE_SHEETS_SPREADSHEET_ID"])
    except Exception as exc:
        logger.exception("[SHEETS] open spreadsheet failed")
        raise SheetsError(f"cannot open spreadsheet: {exc}") from exc
    return SheetsClient(spreadsheet)
