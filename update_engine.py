import logging
from typing import Any, List, Optional

from calendar_resolver import CalendarResolver
from errors import InvalidColumn, RecordNotFound, TimetableError
from models import BatchChange, BatchResult, Empty, Number
from schema_mapper import format_number, to_cell
from settings import TimetableConfig
from sheets_store import require_sheet

logger = logging.getLogger(__name__)

# Fields a batch change may write, in the order they are applied
BATCH_FIELDS = ("staff", "room", "day", "time")


def find_row(rows: List[List[Any]], uid_column: int, uid: Any) -> int:
    """Index of the first row whose uid matches, or -1."""
    wanted = str(uid).strip()
    for i, row in enumerate(rows):
        if uid_column >= len(row):
            continue
        cell = to_cell(row[uid_column])
        if isinstance(cell, Empty):
            continue
        value = format_number(cell.value) if isinstance(cell, Number) else str(cell.value)
        if value.strip() == wanted:
            return i
    return -1


class UpdateEngine:
    def __init__(self, config: TimetableConfig, store, resolver: Optional[CalendarResolver] = None):
        self.config = config
        self.store = store
        self.columns = config.columns
        self.resolver = resolver or CalendarResolver(config, store)

    def _sheet_and_rows(self):
        sheet = require_sheet(self.store, self.config.sheet_name)
        return sheet, sheet.get_rows(self.config.data_range)

    def _check_column(self, column: int) -> None:
        if isinstance(column, bool) or not isinstance(column, int):
            raise InvalidColumn(column)
        if column < 0 or column >= self.columns.width:
            raise InvalidColumn(column)

    def _physical_row(self, index: int) -> int:
        return index + self.config.header_offset

    def _locate(self, rows, uid) -> int:
        index = find_row(rows, self.columns.uid, uid)
        if index == -1:
            raise RecordNotFound(uid)
        return self._physical_row(index)

    def _write(self, uid, column: int, value: Any):
        self._check_column(column)
        sheet, rows = self._sheet_and_rows()
        row = self._locate(rows, uid)
        sheet.set_cell(row, column + 1, value)
        return sheet, row

    def set_field(self, uid: str, column: int, value: Any) -> int:
        """Write ``value`` into ``column`` of the row with ``uid``.

        Returns the sheet row number that was written.
        """
        _, row = self._write(uid, column, value)
        return row

    def _sync_date(self, sheet, row: int, day: Any, period: Any, week: Any) -> None:
        date_column = self.columns.date + 1
        if day is None or str(day).strip() == "":
            sheet.set_cell(row, date_column, "")
            return
        if period in (None, "") or week in (None, ""):
            return
        try:
            resolved = self.resolver.resolve_date(period, week, str(day))
        except TimetableError as e:
            logger.warning("Date not updated for row %d: %s", row, e)
            return
        sheet.set_cell(row, date_column, resolved.formatted)

    def set_field_with_date_recalc(self, uid: str, column: int, value: Any,
                                   period: Any = None, week: Any = None) -> int:
        sheet, row = self._write(uid, column, value)
        if column == self.columns.day:
            self._sync_date(sheet, row, value, period, week)
        return row

    def batch_update(self, changes: List[BatchChange]) -> BatchResult:
        sheet, rows = self._sheet_and_rows()
        updated = 0
        errors = []
        for change in changes:
            index = find_row(rows, self.columns.uid, change.uid)
            if index == -1:
                logger.info("Batch update skipped unknown UID %s", change.uid)
                continue
            row = self._physical_row(index)
            provided = change.model_fields_set
            try:
                for field in BATCH_FIELDS:
                    if field in provided:
                        sheet.set_cell(row, getattr(self.columns, field) + 1, getattr(change, field))
                if "day" in provided:
                    self._sync_date(sheet, row, change.day, change.period, change.week)
            except TimetableError as e:
                logger.error("Batch update failed for UID %s: %s", change.uid, e)
                errors.append(f"{change.uid}: {e}")
                continue
            updated += 1
        logger.info("Batch update: %d of %d records updated", updated, len(changes))
        return BatchResult(updated=updated, total=len(changes), errors=errors)
