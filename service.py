import logging
from typing import Any, Callable, Dict, List, Optional

from calendar_resolver import DAYS, CalendarResolver, day_index, resolve_date
from errors import TimetableError
from models import BatchChange
from query_engine import QueryEngine
from schema_mapper import SchemaMapper
from settings import TimetableConfig
from update_engine import UpdateEngine

logger = logging.getLogger(__name__)


def _run(operation: str, fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Call ``fn`` and wrap its payload in the success/error envelope."""
    try:
        payload = fn()
    except TimetableError as e:
        logger.warning("%s failed: %s", operation, e)
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.exception("%s raised unexpectedly", operation)
        return {"success": False, "error": str(e)}
    return {"success": True, **payload}


class TimetableService:
    """Every operation the UI can call, each answering with an envelope."""

    def __init__(self, config: TimetableConfig, store):
        self.config = config
        self.store = store
        mapper = SchemaMapper(config)
        self.queries = QueryEngine(config, store, mapper)
        self.calendar = CalendarResolver(config, store, mapper)
        self.updates = UpdateEngine(config, store, self.calendar)

    def get_timetable_data(self):
        return _run("getTimetableData", lambda: {"data": self.queries.timetable_data()})

    def get_unique_modules(self):
        def modules():
            return {"modules": [m.model_dump() for m in self.queries.list_modules()]}
        return _run("getUniqueModules", modules)

    def get_unique_periods(self):
        return _run("getUniquePeriods", lambda: {"periods": self.queries.list_periods()})

    def get_module_data(self, module: str, period: str):
        def module_data():
            result = self.queries.get_module_data(module, period)
            return {
                "data": result.data,
                "groupedData": result.grouped_data,
                "groups": result.groups,
            }
        return _run("getModuleData", module_data)

    def get_staff_list(self):
        return _run("getStaffList", lambda: {"staff": self.queries.list_staff()})

    def get_room_list(self):
        return _run("getRoomList", lambda: {"rooms": self.queries.list_rooms()})

    def get_academic_calendar(self):
        def calendar():
            return {"calendar": [e.to_payload() for e in self.calendar.load_calendar()]}
        return _run("getAcademicCalendar", calendar)

    def calculate_date(self, period: str, week: Any, day: str):
        def calculate():
            resolved = resolve_date(self.calendar.calendar_map(), period, week, day)
            d = resolved.value
            return {
                "date": resolved.formatted,
                "dateParts": {
                    "year": d.year,
                    "month": d.month,
                    "day": d.day,
                    "dayOfWeek": DAYS[day_index(d)],
                },
            }
        return _run("calculateDate", calculate)

    def save_edited_data(self, uid: str, column: int, value: Any):
        def save():
            self.updates.set_field(uid, column, value)
            return {"message": f"Data saved successfully for UID: {uid}"}
        return _run("saveEditedData", save)

    def save_edited_data_with_date(self, uid: str, column: int, value: Any,
                                   period: Optional[str] = None, week: Any = None):
        def save():
            self.updates.set_field_with_date_recalc(uid, column, value, period, week)
            return {"message": f"Data saved successfully for UID: {uid}"}
        return _run("saveEditedDataWithDate", save)

    def batch_update_fields(self, changes: List[BatchChange]):
        def batch():
            result = self.updates.batch_update(changes)
            return {
                "updated": result.updated,
                "total": result.total,
                "errors": result.errors,
                "message": f"Updated {result.updated} of {result.total} records",
            }
        return _run("batchUpdateFields", batch)

    def debug_config(self) -> Dict[str, Any]:
        result = {
            "configLoaded": True,
            "configDetails": {
                "spreadsheetId": self.config.spreadsheet_id,
                "sheetName": self.config.sheet_name,
                "dataRange": self.config.data_range,
            },
            "spreadsheetAccess": False,
            "sheetAccess": False,
            "error": None,
        }
        try:
            sheet = self.store.find_sheet(self.config.sheet_name)
            result["spreadsheetAccess"] = True
            if sheet is not None:
                rows = sheet.get_rows(self.config.data_range)
                result["sheetAccess"] = True
                result["rowCount"] = len(rows)
                result["columnCount"] = max((len(r) for r in rows), default=0)
        except TimetableError as e:
            result["error"] = f"Spreadsheet access error: {e}"
        return result
