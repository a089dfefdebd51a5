"""Google Sheets connector: weekday change log and the locations lookup table."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Sequence

try:
    import gspread  # type: ignore
except ImportError:  # pragma: no cover
    gspread = None

try:
    from google.oauth2.service_account import Credentials  # type: ignore
except ImportError:  # pragma: no cover
    Credentials = None

from geobid.config import LocationsConfig
from geobid.locations import LocationResolver
from geobid.schema import BidDecision
from geobid.sinks import BaseReportSink, weekday_column

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsConfigError(RuntimeError):
    pass


def _resolve_creds_path() -> str:
    path = os.environ.get("GEOBID_GOOGLE_CREDS_JSON") or os.environ.get(
        "GOOGLE_APPLICATION_CREDENTIALS"
    )
    if not path:
        raise GoogleSheetsConfigError(
            "Google credentials not configured. Set GEOBID_GOOGLE_CREDS_JSON or "
            "GOOGLE_APPLICATION_CREDENTIALS to a Service Account JSON path."
        )
    if not Path(path).exists():
        raise GoogleSheetsConfigError(f"Credential file not found: {path}")
    return path


def authorize():
    """Return an authorized gspread client from the service account file."""
    creds_path = _resolve_creds_path()
    if gspread is None or Credentials is None:
        raise GoogleSheetsConfigError(
            "Google Sheets dependencies missing. Install gspread and google-auth, "
            "then retry."
        )
    creds = Credentials.from_service_account_file(creds_path, scopes=SCOPES)
    return gspread.authorize(creds)


def open_spreadsheet(client, spreadsheet: str):
    """Open by URL or by key."""
    if spreadsheet.startswith("http"):
        return client.open_by_url(spreadsheet)
    return client.open_by_key(spreadsheet)


def load_locations_from_sheet(cfg: LocationsConfig, client=None) -> LocationResolver:
    if not cfg.spreadsheet_id:
        raise GoogleSheetsConfigError("locations.spreadsheet_id is not configured")
    client = client or authorize()
    ws = open_spreadsheet(client, cfg.spreadsheet_id).worksheet(cfg.worksheet)
    resolver = LocationResolver.from_rows(
        ws.get_all_values(),
        id_column=cfg.id_column,
        name_column=cfg.name_column,
        key_column=cfg.key_column,
    )
    logger.info("Loaded %d location keys from worksheet '%s'", len(resolver), cfg.worksheet)
    return resolver


class SheetsReportSink(BaseReportSink):
    """One worksheet per campaign, one column per weekday.

    At the start of a run today's column is emptied in every worksheet; each
    change is then written to the next free cell of that column.
    """

    def __init__(self, spreadsheet_id: str, weekday_labels: Sequence[str], client=None) -> None:
        self.client = client or authorize()
        self.book = open_spreadsheet(self.client, spreadsheet_id)
        self.labels = list(weekday_labels)
        self.column: Optional[int] = None
        self._sheets: Dict[str, object] = {}
        self._next_row: Dict[str, int] = {}

    def start_run(self, now: datetime) -> None:
        self.column = weekday_column(now)
        label = self.labels[self.column - 1]
        for ws in self.book.worksheets():
            if getattr(ws, "col_count", self.column) >= self.column:
                ws.delete_columns(self.column)
            ws.insert_cols([[label]], self.column)
            self._sheets[ws.title] = ws
            self._next_row[ws.title] = 2

    def _worksheet(self, title: str):
        if title in self._sheets:
            return self._sheets[title]
        try:
            ws = self.book.worksheet(title)
        except gspread.exceptions.WorksheetNotFound:
            ws = self.book.add_worksheet(title=title, rows=1000, cols=len(self.labels))
            ws.update(range_name="A1", values=[self.labels])
            logger.info("Created report worksheet '%s'", title)
        self._sheets[title] = ws
        return ws

    def _row_for(self, title: str, ws) -> int:
        if title not in self._next_row:
            self._next_row[title] = len(ws.col_values(self.column)) + 1
        row = self._next_row[title]
        self._next_row[title] = row + 1
        return row

    def record(self, decision: BidDecision) -> None:
        if not decision.is_change:
            return
        if self.column is None:
            raise RuntimeError("start_run() must be called before record()")
        ws = self._worksheet(decision.campaign)
        ws.update_cell(self._row_for(decision.campaign, ws), self.column, decision.entry)
