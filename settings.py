import os
import re
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from errors import ConfigMissing


class ColumnMap(BaseModel):
    """0-based positions of the named fields in the Timetable sheet."""
    period: int = 0
    week: int = 1
    module: int = 4
    topic: int = 5
    location: int = 6
    group: int = 7
    hours: int = 8
    staff: int = 11
    room: int = 12
    day: int = 13
    time: int = 14
    date: int = 15
    uid: int = 16

    model_config = {"frozen": True}

    @property
    def width(self) -> int:
        return max(self.model_dump().values()) + 1


class TimetableConfig(BaseModel):
    spreadsheet_id: str
    sheet_name: str = "Timetable"
    data_range: str = "A2:Q"
    calendar_sheet_name: str = "Academic Calendar"
    calendar_range: str = "A2:B"
    staff_sheet_name: str = "HR"
    staff_range: str = "A2:A"
    room_sheet_name: str = "Facility"
    room_range: str = "A2:A"
    timezone: str = "UTC"
    token_file: str = "token.json"
    client_secrets_file: str = "credentials.json"
    redirect_uri: str = "http://localhost:8000/auth/callback"
    service_account_file: Optional[str] = None
    columns: ColumnMap = ColumnMap()

    model_config = {"frozen": True}

    @property
    def header_offset(self) -> int:
        """Sheet row number of the first row in the data range."""
        match = re.match(r"^[A-Za-z]*(\d+)", self.data_range.split(":")[0])
        return int(match.group(1)) if match else 1

    @classmethod
    def from_env(cls) -> "TimetableConfig":
        load_dotenv()

        spreadsheet_id = os.environ.get("SPREADSHEET_ID")
        if not spreadsheet_id:
            raise ConfigMissing("Configuration not loaded: SPREADSHEET_ID is not set")

        env_map = {
            "sheet_name": "TIMETABLE_SHEET",
            "data_range": "TIMETABLE_RANGE",
            "calendar_sheet_name": "CALENDAR_SHEET",
            "calendar_range": "CALENDAR_RANGE",
            "staff_sheet_name": "STAFF_SHEET",
            "staff_range": "STAFF_RANGE",
            "room_sheet_name": "ROOM_SHEET",
            "room_range": "ROOM_RANGE",
            "timezone": "SHEET_TIMEZONE",
            "token_file": "GOOGLE_TOKEN_FILE",
            "client_secrets_file": "GOOGLE_CLIENT_SECRETS_FILE",
            "redirect_uri": "GOOGLE_REDIRECT_URI",
            "service_account_file": "GOOGLE_SERVICE_ACCOUNT_FILE",
        }
        overrides = {field: os.environ[var] for field, var in env_map.items() if os.environ.get(var)}
        return cls(spreadsheet_id=spreadsheet_id, **overrides)
