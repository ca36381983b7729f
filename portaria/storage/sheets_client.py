"""Google Sheets API client used as the authoritative delivery store."""

import os
import socket
import threading
from typing import Any, Dict, List, Optional, Tuple
import google.auth
import httplib2
from google.auth.exceptions import GoogleAuthError, TransportError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import settings
from ..exceptions import RemoteStoreError

# Set default socket timeout to prevent hanging
socket.setdefaulttimeout(60)

Row = Dict[str, Any]

# Worth retrying: API errors, dropped sockets, DNS failures, token refresh
_TRANSIENT_ERRORS = (HttpError, OSError, httplib2.HttpLib2Error, TransportError)
# Everything the Google client raises when the backend cannot answer
_BACKEND_ERRORS = _TRANSIENT_ERRORS + (GoogleAuthError,)


def column_letter(index: int) -> str:
    """Convert a 1-based column index to A1 notation (1 -> A, 27 -> AA)."""
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


class SheetsClient:
    """
    Table-style access to a spreadsheet.

    Each worksheet is a table whose first row holds the column names.
    Rows are exchanged as dictionaries keyed by those names.
    """

    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(
        self,
        spreadsheet_id: Optional[str] = None,
        service: Any = None
    ):
        """
        Initialize the Sheets client.

        Args:
            spreadsheet_id: Target spreadsheet, defaults to settings
            service: Prebuilt Sheets service (skips credential lookup)
        """
        self.spreadsheet_id = spreadsheet_id or settings.google_sheets_id
        if not self.spreadsheet_id:
            raise ValueError("GOOGLE_SHEETS_ID must be set in environment variables")

        # Thread-local storage for per-request client reuse
        self._local = threading.local()
        # Serializes conditional updates issued by this process
        self._write_lock = threading.Lock()
        self._service = service

        if service is not None:
            self.credentials = None
            return

        try:
            creds_path = settings.google_application_credentials

            # Try to use credentials file if it exists (local dev)
            if creds_path and os.path.isfile(creds_path):
                self.credentials = service_account.Credentials.from_service_account_file(
                    creds_path,
                    scopes=self.SCOPES
                )
                logger.info("Using service account file for credentials")
            else:
                # Use Application Default Credentials (ADC)
                self.credentials, _ = google.auth.default(scopes=self.SCOPES)
                logger.info("Using Application Default Credentials (ADC)")

            logger.info("Google Sheets client initialized (per-request reuse)")
        except Exception as e:
            logger.error(f"Failed to initialize Sheets client: {e}")
            raise

    def _get_sheets_service(self):
        """Get or create Sheets service for current thread/request."""
        if self._service is not None:
            return self._service
        if not hasattr(self._local, 'sheets_service'):
            self._local.sheets_service = build(
                "sheets",
                "v4",
                credentials=self.credentials,
                cache_discovery=False
            )
        return self._local.sheets_service

    def initialize_sheet(self, table: str, columns: List[str]) -> bool:
        """Verify the worksheet exists and its header holds every column."""
        try:
            service = self._get_sheets_service()
            sheet_metadata = service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id
            ).execute()

            sheets = sheet_metadata.get("sheets", [])
            sheet_exists = any(
                sheet.get("properties", {}).get("title") == table
                for sheet in sheets
            )

            if not sheet_exists:
                logger.error(
                    f"Sheet '{table}' not found. "
                    "Please create it manually with the expected header row."
                )
                return False

            header, _ = self._read_table(table)
            missing = [column for column in columns if column not in header]
            if missing:
                logger.error(f"Sheet '{table}' is missing columns: {missing}")
                return False

            logger.info(f"Sheet '{table}' verified successfully")
            return True

        except HttpError as e:
            logger.error(f"Failed to verify sheet: {e}")
            return False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True
    )
    def _read_table(self, table: str) -> Tuple[List[str], List[List[str]]]:
        """Read header and data rows of a worksheet."""
        service = self._get_sheets_service()
        result = service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"{table}!A1:ZZ"
        ).execute()

        values = result.get("values", [])
        if not values:
            return [], []
        return values[0], values[1:]

    @staticmethod
    def _to_dict(header: List[str], row: List[str]) -> Row:
        # Pad row with empty strings if needed
        row = row + [""] * (len(header) - len(row))
        return dict(zip(header, row))

    @staticmethod
    def _matches(row: Row, filters: Dict[str, Any]) -> bool:
        return all(
            str(row.get(key, "")) == str(value)
            for key, value in filters.items()
        )

    def select(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Row]:
        """Return rows whose fields equal every filter value."""
        try:
            header, values = self._read_table(table)
        except _BACKEND_ERRORS as e:
            logger.error(f"Failed to read sheet '{table}': {e}")
            raise RemoteStoreError(f"Failed to read '{table}': {e}") from e

        rows = [
            row for row in (self._to_dict(header, v) for v in values)
            if self._matches(row, filters)
        ]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)

        logger.debug(f"Selected {len(rows)} row(s) from '{table}' where {filters}")
        return rows

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True
    )
    def _append_row(self, table: str, width: int, row: List[str]) -> None:
        service = self._get_sheets_service()
        service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"{table}!A:{column_letter(width)}",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [row]}
        ).execute()

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True
    )
    def _write_row(
        self, table: str, row_number: int, width: int, row: List[str]
    ) -> None:
        service = self._get_sheets_service()
        service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{table}!A{row_number}:{column_letter(width)}{row_number}",
            valueInputOption="RAW",
            body={"values": [row]}
        ).execute()

    def insert(self, table: str, values: Row) -> Row:
        """Append a row; columns absent from the header are dropped."""
        try:
            header, _ = self._read_table(table)
            if not header:
                raise RemoteStoreError(f"Sheet '{table}' has no header row")

            row = ["" if values.get(h) is None else str(values.get(h)) for h in header]
            self._append_row(table, len(header), row)
        except _BACKEND_ERRORS as e:
            logger.error(f"Failed to insert into '{table}': {e}")
            raise RemoteStoreError(f"Failed to insert into '{table}': {e}") from e

        logger.info(f"Inserted row into '{table}'")
        return self._to_dict(header, row)

    def update(
        self,
        table: str,
        filters: Dict[str, Any],
        values: Row,
        expected: Optional[Dict[str, Any]] = None
    ) -> List[Row]:
        """
        Update matching rows, optionally guarded by `expected` values.

        The guard is checked against a fresh read taken under the write
        lock, right before each row is written.
        """
        updated = []
        with self._write_lock:
            try:
                header, data = self._read_table(table)

                for index, raw in enumerate(data):
                    row = self._to_dict(header, raw)
                    if not self._matches(row, filters):
                        continue
                    if expected and not self._matches(row, expected):
                        logger.warning(
                            f"Conditional update on '{table}' skipped: "
                            f"row no longer matches {expected}"
                        )
                        continue

                    row.update({k: "" if v is None else str(v) for k, v in values.items()})
                    # Header is row 1, data starts at row 2
                    self._write_row(
                        table, index + 2, len(header), [row[h] for h in header]
                    )
                    updated.append(row)
            except _BACKEND_ERRORS as e:
                logger.error(f"Failed to update '{table}': {e}")
                raise RemoteStoreError(f"Failed to update '{table}': {e}") from e

        logger.info(f"Updated {len(updated)} row(s) in '{table}' where {filters}")
        return updated
