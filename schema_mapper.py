import datetime
from typing import Any, List, Sequence

from dateutil import tz

from models import CellValue, DateTime, Empty, Number, SessionRecord, Text
from settings import TimetableConfig


def to_cell(raw: Any) -> CellValue:
    if raw is None or raw == "":
        return Empty()
    if isinstance(raw, bool):
        return Text(value="true" if raw else "false")
    if isinstance(raw, (int, float)):
        return Number(value=raw)
    if isinstance(raw, datetime.datetime):
        return DateTime(value=raw)
    if isinstance(raw, datetime.date):
        return DateTime(value=datetime.datetime.combine(raw, datetime.time()))
    return Text(value=str(raw))


def row_has_data(row: Sequence[Any]) -> bool:
    return any(not isinstance(to_cell(c), Empty) for c in row)


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class SchemaMapper:
    """Turns raw Timetable rows into serialized cells and SessionRecords."""

    def __init__(self, config: TimetableConfig):
        self.columns = config.columns
        self.width = self.columns.width
        self.tzinfo = tz.gettz(config.timezone) or tz.UTC

    def to_local(self, value: datetime.datetime) -> datetime.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tzinfo)
        return value.astimezone(self.tzinfo)

    def format_instant(self, value: datetime.datetime) -> str:
        utc = self.to_local(value).astimezone(tz.UTC)
        return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"

    def format_time(self, value: datetime.datetime) -> str:
        local = self.to_local(value)
        return f"{local.hour:02d}:{local.minute:02d}:{local.second:02d}"

    def serialize_cell(self, cell: CellValue, index: int) -> str:
        if isinstance(cell, Empty):
            return ""
        if isinstance(cell, DateTime):
            if index == self.columns.time:
                return self.format_time(cell.value)
            return self.format_instant(cell.value)
        if isinstance(cell, Number):
            return format_number(cell.value)
        return cell.value

    def serialize_row(self, row: Sequence[Any]) -> List[str]:
        # Short rows are padded, long rows keep their extra cells
        cells = [to_cell(c) for c in row]
        if len(cells) < self.width:
            cells.extend([Empty()] * (self.width - len(cells)))
        return [self.serialize_cell(c, i) for i, c in enumerate(cells)]

    def to_record(self, row: Sequence[Any]) -> SessionRecord:
        return self.record_from_serialized(self.serialize_row(row))

    def record_from_serialized(self, values: Sequence[str]) -> SessionRecord:
        fields = {
            name: values[index].strip()
            for name, index in self.columns.model_dump().items()
            if index < len(values)
        }
        return SessionRecord(**fields)
