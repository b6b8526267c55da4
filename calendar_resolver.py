import datetime
import logging
import re
from typing import Any, Dict, List, Optional

from errors import InvalidDay, InvalidWeek, PeriodNotFound
from models import CalendarEntry, DateTime, ResolvedDate, Text
from schema_mapper import SchemaMapper, to_cell
from settings import TimetableConfig
from sheets_store import require_sheet

logger = logging.getLogger(__name__)

DAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DAY_INDEX = {name: i for i, name in enumerate(DAYS)}
ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
WEEK_DIGITS = re.compile(r"\d+", re.ASCII)


def day_index(d: datetime.date) -> int:
    """Weekday with Sunday as 0."""
    return (d.weekday() + 1) % 7


def parse_week(week: Any) -> int:
    if isinstance(week, bool):
        raise InvalidWeek(week)
    if isinstance(week, int):
        number = week
    elif isinstance(week, float) and week.is_integer():
        number = int(week)
    elif isinstance(week, str) and WEEK_DIGITS.fullmatch(week.strip()):
        number = int(week.strip())
    else:
        raise InvalidWeek(week)
    if number < 1:
        raise InvalidWeek(week)
    return number


def resolve_date(calendar: Dict[str, datetime.date], period: str, week: Any, day: str) -> ResolvedDate:
    """Concrete date of ``day`` in teaching week ``week`` of ``period``.

    Week 1 starts on the period's start date whatever weekday that is, so the
    requested day is the first one on or after the start of that 7-day window.
    """
    start = calendar.get((period or "").strip())
    if start is None:
        raise PeriodNotFound(period)

    week_number = parse_week(week)

    target = DAY_INDEX.get((day or "").strip())
    if target is None:
        raise InvalidDay(day)

    try:
        base = start + datetime.timedelta(days=(week_number - 1) * 7)
        days_ahead = (target - day_index(base) + 7) % 7
        return ResolvedDate(value=base + datetime.timedelta(days=days_ahead))
    except OverflowError:
        raise InvalidWeek(week)


class CalendarResolver:
    def __init__(self, config: TimetableConfig, store, mapper: Optional[SchemaMapper] = None):
        self.config = config
        self.store = store
        self.mapper = mapper or SchemaMapper(config)

    def _start_date(self, raw: Any) -> Optional[datetime.date]:
        cell = to_cell(raw)
        if isinstance(cell, DateTime):
            return self.mapper.to_local(cell.value).date()
        # text start dates must be complete ISO dates (YYYY-MM-DD)
        if isinstance(cell, Text) and ISO_DATE.fullmatch(cell.value.strip()):
            try:
                return datetime.date.fromisoformat(cell.value.strip())
            except ValueError:
                return None
        return None

    def load_calendar(self) -> List[CalendarEntry]:
        sheet = require_sheet(self.store, self.config.calendar_sheet_name)
        entries = []
        seen = set()
        for i, row in enumerate(sheet.get_rows(self.config.calendar_range)):
            period = self.mapper.serialize_cell(to_cell(row[0] if row else None), 0).strip()
            if not period:
                continue
            start = self._start_date(row[1] if len(row) > 1 else None)
            if start is None:
                logger.warning("Skipping calendar row %d (%s): no valid start date", i, period)
                continue
            if period in seen:
                logger.warning("Duplicate calendar entry for %s ignored", period)
                continue
            seen.add(period)
            entries.append(CalendarEntry(period=period, start_date=start))
        logger.debug("Loaded %d academic calendar entries", len(entries))
        return entries

    def calendar_map(self) -> Dict[str, datetime.date]:
        return {e.period: e.start_date for e in self.load_calendar()}

    def resolve_date(self, period: str, week: Any, day: str) -> ResolvedDate:
        return resolve_date(self.calendar_map(), period, week, day)
