class TimetableError(Exception):
    """Base class for every failure reported back to the UI."""


class ConfigMissing(TimetableError):
    pass


class TableNotFound(TimetableError):
    def __init__(self, name: str):
        super().__init__(f"Sheet not found: {name}")
        self.name = name


class RecordNotFound(TimetableError):
    def __init__(self, uid: str):
        super().__init__(f"Record with UID {uid} not found")
        self.uid = uid


class PeriodNotFound(TimetableError):
    def __init__(self, period: str):
        super().__init__(f"Teaching period not found in academic calendar: {period}")
        self.period = period


class InvalidWeek(TimetableError):
    def __init__(self, week):
        super().__init__(f"Invalid week number: {week}")
        self.week = week


class InvalidDay(TimetableError):
    def __init__(self, day):
        super().__init__(f"Invalid day of week: {day}")
        self.day = day


class InvalidColumn(TimetableError):
    def __init__(self, column):
        super().__init__(f"Column index out of range: {column}")
        self.column = column


class BackendError(TimetableError):
    """Wraps failures raised by the Google Sheets client."""
