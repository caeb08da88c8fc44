"""
Row Store - Google Sheets backed tabular storage

Shared spreadsheet tables are the hand-off point between the people (or
tools) writing trade signals and this relay. Each table is a sheet whose
first row holds the column headers; every later row is addressed by its
1-based sheet row number.

Components:
- Row: One data row keyed by header name
- RowStore: Protocol consumed by SignalQueue and MessageTemplates
- GoogleSheetsRowStore: Sheets v4 implementation (google-api-python-client)
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build

from signal_relay.config import SheetsConfig

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

# First data row; row 1 holds the headers
FIRST_DATA_ROW = 2


@dataclass
class Row:
    """A single table row, addressed by its sheet row number."""
    row_number: int
    values: Dict[str, Any] = field(default_factory=dict)

    def get(self, column: str, default: Any = None) -> Any:
        value = self.values.get(column, default)
        return default if value is None else value


class RowStore(Protocol):
    """Protocol for the tabular store used by the relay."""

    def ensure_table(self, name: str, headers: Sequence[str]) -> bool: ...

    def read_rows(self, name: str) -> List[Row]: ...

    def append_rows(self, name: str, rows: List[Dict[str, Any]]) -> None: ...

    def update_cell(self, name: str, row_number: int, column: str, value: Any) -> None: ...


def column_letter(index: int) -> str:
    """
    Convert a 0-based column index to A1 column letters.

    Example:
        column_letter(0) -> 'A', column_letter(27) -> 'AB'
    """
    letters = ''
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord('A') + remainder) + letters
    return letters


def rows_from_values(values: List[List[Any]]) -> List[Row]:
    """
    Build Row objects from a raw values grid (header row first).

    Short rows are padded with None; fully empty rows are skipped.
    """
    if not values:
        return []

    headers = [str(h).strip() for h in values[0]]
    rows = []
    for offset, raw in enumerate(values[1:]):
        if not any(cell not in (None, '') for cell in raw):
            continue
        padded = list(raw) + [None] * (len(headers) - len(raw))
        rows.append(Row(
            row_number=FIRST_DATA_ROW + offset,
            values=dict(zip(headers, padded)),
        ))
    return rows


class GoogleSheetsRowStore:
    """
    Google Sheets implementation of RowStore.

    The Sheets service object is built lazily and shared by every caller.
    Its httplib2 transport is not thread-safe, so all API calls go through
    a single lock; the signal and announcement jobs run on separate threads.

    Usage:
        store = GoogleSheetsRowStore(config.sheets)
        store.ensure_table('Signals', SIGNAL_HEADERS)
        rows = store.read_rows('Signals')
    """

    def __init__(self, config: SheetsConfig, service: Optional[Any] = None):
        """
        Initialize the row store.

        Args:
            config: Sheets configuration
            service: Optional pre-built Sheets service (for testing)
        """
        self.config = config
        self._service = service
        self._lock = threading.Lock()

    def _build_service(self) -> Any:
        credentials = service_account.Credentials.from_service_account_info(
            {
                'type': 'service_account',
                'client_email': self.config.service_account_email,
                'private_key': self.config.private_key,
                'token_uri': self.config.token_uri,
            },
            scopes=SCOPES,
        )
        logger.info(
            f"Connecting to spreadsheet {self.config.spreadsheet_id} "
            f"as {self.config.service_account_email}"
        )
        return build('sheets', 'v4', credentials=credentials, cache_discovery=False)

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = self._build_service()
        return self._service

    def _spreadsheets(self) -> Any:
        return self.service.spreadsheets()

    def _execute(self, request: Any) -> Dict[str, Any]:
        with self._lock:
            return request.execute()

    def _get_values(self, range_: str) -> List[List[Any]]:
        result = self._execute(
            self._spreadsheets().values().get(
                spreadsheetId=self.config.spreadsheet_id,
                range=range_,
                valueRenderOption='UNFORMATTED_VALUE',
            )
        )
        return result.get('values', [])

    def list_tables(self) -> List[str]:
        """Return the titles of all sheets in the spreadsheet."""
        result = self._execute(
            self._spreadsheets().get(
                spreadsheetId=self.config.spreadsheet_id,
                fields='sheets.properties.title',
            )
        )
        return [s['properties']['title'] for s in result.get('sheets', [])]

    def read_headers(self, name: str) -> List[str]:
        values = self._get_values(f"'{name}'!1:1")
        return [str(h).strip() for h in values[0]] if values else []

    def _write_headers(self, name: str, headers: Sequence[str]) -> None:
        self._execute(
            self._spreadsheets().values().update(
                spreadsheetId=self.config.spreadsheet_id,
                range=f"'{name}'!A1",
                valueInputOption='RAW',
                body={'values': [list(headers)]},
            )
        )

    def ensure_table(self, name: str, headers: Sequence[str]) -> bool:
        """
        Make sure a sheet exists with a header row.

        Creates the sheet when missing and writes the header row when the
        sheet exists but its first row is empty.

        Returns:
            True if the sheet was created
        """
        if name not in self.list_tables():
            self._execute(
                self._spreadsheets().batchUpdate(
                    spreadsheetId=self.config.spreadsheet_id,
                    body={'requests': [{'addSheet': {'properties': {'title': name}}}]},
                )
            )
            self._write_headers(name, headers)
            logger.info(f"Created sheet '{name}' with headers {list(headers)}")
            return True

        if not self.read_headers(name):
            self._write_headers(name, headers)
            logger.info(f"Wrote missing header row for sheet '{name}'")
        return False

    def read_rows(self, name: str) -> List[Row]:
        """Read every data row of a sheet."""
        return rows_from_values(self._get_values(f"'{name}'"))

    def append_rows(self, name: str, rows: List[Dict[str, Any]]) -> None:
        """Append rows (dicts keyed by header) to the end of a sheet."""
        if not rows:
            return
        headers = self.read_headers(name)
        body = [[row.get(h, '') for h in headers] for row in rows]
        self._execute(
            self._spreadsheets().values().append(
                spreadsheetId=self.config.spreadsheet_id,
                range=f"'{name}'!A1",
                valueInputOption='USER_ENTERED',
                insertDataOption='INSERT_ROWS',
                body={'values': body},
            )
        )
        logger.debug(f"Appended {len(body)} row(s) to '{name}'")

    def update_cell(self, name: str, row_number: int, column: str, value: Any) -> None:
        """
        Update a single cell addressed by row number and header name.

        Raises:
            KeyError: If the column is not in the header row
        """
        headers = self.read_headers(name)
        if column not in headers:
            raise KeyError(f"Column '{column}' not found in sheet '{name}'")
        cell = f"'{name}'!{column_letter(headers.index(column))}{row_number}"
        self._execute(
            self._spreadsheets().values().update(
                spreadsheetId=self.config.spreadsheet_id,
                range=cell,
                valueInputOption='USER_ENTERED',
                body={'values': [[value]]},
            )
        )
        logger.debug(f"Updated {cell} = {value!r}")
