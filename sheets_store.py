import datetime
import logging
import os.path
import re
import threading
from typing import Any, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from errors import BackendError, ConfigMissing, TableNotFound
from settings import TimetableConfig

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

# Google Sheets serial numbers count days from this date
SERIAL_EPOCH = datetime.datetime(1899, 12, 30)
DATE_FORMAT_TYPES = {"DATE", "TIME", "DATE_TIME"}

GRID_FIELDS = "sheets(data(rowData(values(effectiveValue,effectiveFormat(numberFormat(type))))))"


def column_letter(column: int) -> str:
    """1-based column number to A1 letters (1 -> A, 27 -> AA)."""
    letters = ""
    while column > 0:
        column, rem = divmod(column - 1, 26)
        letters = chr(ord('A') + rem) + letters
    return letters


def column_number(letters: str) -> int:
    number = 0
    for ch in letters.upper():
        number = number * 26 + (ord(ch) - ord('A') + 1)
    return number


def range_width(a1_range: str) -> int:
    """Number of columns covered by an A1 range such as ``A2:Q``."""
    parts = a1_range.split(":")
    start = re.match(r"^([A-Za-z]+)", parts[0])
    end = re.match(r"^([A-Za-z]+)", parts[-1])
    if not start or not end:
        return 0
    return column_number(end.group(1)) - column_number(start.group(1)) + 1


def quote_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def _cell_value(cell: dict) -> Any:
    value = cell.get("effectiveValue")
    if not value:
        return ""
    if "numberValue" in value:
        number = value["numberValue"]
        fmt = cell.get("effectiveFormat", {}).get("numberFormat", {}).get("type")
        if fmt in DATE_FORMAT_TYPES:
            # round to the second, serial fractions are not exact
            return SERIAL_EPOCH + datetime.timedelta(seconds=round(number * 86400))
        return number
    if "boolValue" in value:
        return value["boolValue"]
    if "stringValue" in value:
        return value["stringValue"]
    if "errorValue" in value:
        return "#" + value["errorValue"].get("type", "ERROR")
    return ""


def _flow(config: TimetableConfig) -> Flow:
    if not os.path.exists(config.client_secrets_file):
        raise ConfigMissing(f"{config.client_secrets_file} not found.")
    return Flow.from_client_secrets_file(
        config.client_secrets_file,
        scopes=SCOPES,
        redirect_uri=config.redirect_uri,
    )


def get_auth_url(config: TimetableConfig) -> str:
    auth_url, _ = _flow(config).authorization_url(prompt='consent')
    return auth_url


def exchange_code(config: TimetableConfig, code: str) -> None:
    """Trade an OAuth callback code for a token and save it to the token file."""
    flow = _flow(config)
    flow.fetch_token(code=code)
    with open(config.token_file, 'w') as token:
        token.write(flow.credentials.to_json())
    logger.info("Saved Google credentials to %s", config.token_file)


def load_credentials(config: TimetableConfig):
    creds = None
    if os.path.exists(config.token_file):
        creds = Credentials.from_authorized_user_file(config.token_file, SCOPES)
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
            with open(config.token_file, 'w') as token:
                token.write(creds.to_json())
    elif config.service_account_file:
        creds = service_account.Credentials.from_service_account_file(
            config.service_account_file, scopes=SCOPES
        )

    if creds is None:
        raise ConfigMissing(
            f"No Google credentials: {config.token_file} not found and "
            "GOOGLE_SERVICE_ACCOUNT_FILE is not set"
        )
    return creds


class Sheet:
    """One tab of the spreadsheet."""

    def __init__(self, store: "SheetsStore", title: str):
        self.store = store
        self.title = title

    def get_rows(self, a1_range: str) -> List[List[Any]]:
        width = range_width(a1_range)
        try:
            result = self.store.execute(self.store.service.spreadsheets().get(
                spreadsheetId=self.store.spreadsheet_id,
                ranges=[f"{quote_title(self.title)}!{a1_range}"],
                includeGridData=True,
                fields=GRID_FIELDS,
            ))
        except (HttpError, GoogleAuthError, OSError) as e:
            raise BackendError(f"Failed to read {self.title}!{a1_range}: {e}") from e

        rows = []
        for sheet in result.get("sheets", []):
            for grid in sheet.get("data", []):
                for row_data in grid.get("rowData", []):
                    row = [_cell_value(c) for c in row_data.get("values", [])]
                    if len(row) < width:
                        row.extend([""] * (width - len(row)))
                    rows.append(row)
        logger.debug("Read %d rows from %s!%s", len(rows), self.title, a1_range)
        return rows

    def set_cell(self, row: int, column: int, value: Any) -> None:
        """Write one cell; ``row`` and ``column`` are 1-based."""
        a1 = f"{quote_title(self.title)}!{column_letter(column)}{row}"
        try:
            self.store.execute(self.store.service.spreadsheets().values().update(
                spreadsheetId=self.store.spreadsheet_id,
                range=a1,
                valueInputOption="USER_ENTERED",
                body={"values": [["" if value is None else value]]},
            ))
        except (HttpError, GoogleAuthError, OSError) as e:
            raise BackendError(f"Failed to write {a1}: {e}") from e
        logger.info("Wrote %r to %s", value, a1)


class SheetsStore:
    def __init__(self, config: TimetableConfig, service=None):
        self.spreadsheet_id = config.spreadsheet_id
        self._config = config
        self._service = service
        # the client's httplib2 transport is not thread-safe and routes run in a threadpool
        self._lock = threading.Lock()

    @property
    def service(self):
        with self._lock:
            if self._service is None:
                try:
                    creds = load_credentials(self._config)
                except (GoogleAuthError, OSError, ValueError) as e:
                    raise BackendError(f"Could not load Google credentials: {e}") from e
                self._service = build('sheets', 'v4', credentials=creds, cache_discovery=False)
            return self._service

    def execute(self, request):
        """Run a prepared API request, one at a time across threads."""
        with self._lock:
            return request.execute()

    def sheet_titles(self) -> List[str]:
        try:
            meta = self.execute(self.service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties.title",
            ))
        except (HttpError, GoogleAuthError, OSError) as e:
            raise BackendError(f"Spreadsheet access error: {e}") from e
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def find_sheet(self, name: str) -> Optional[Sheet]:
        if name in self.sheet_titles():
            return Sheet(self, name)
        return None


def require_sheet(store, name: str):
    """``store.find_sheet`` that raises TableNotFound instead of returning None."""
    sheet = store.find_sheet(name)
    if sheet is None:
        raise TableNotFound(name)
    return sheet
