import logging
import re
from typing import Any, Dict, List, Optional

from models import ModuleData, ModuleRef
from schema_mapper import SchemaMapper, row_has_data, to_cell
from settings import TimetableConfig
from sheets_store import require_sheet

logger = logging.getLogger(__name__)


def leading_int(value: str) -> int:
    """Integer prefix of a string, 0 when there is none ("3rd" -> 3, "TBC" -> 0)."""
    match = re.match(r"^\s*([+-]?\d+)", value or "")
    return int(match.group(1)) if match else 0


def group_sort_key(label: str):
    match = re.search(r"\d+", label)
    return (int(match.group(0)) if match else 0, label)


class QueryEngine:
    def __init__(self, config: TimetableConfig, store, mapper: Optional[SchemaMapper] = None):
        self.config = config
        self.store = store
        self.mapper = mapper or SchemaMapper(config)
        self.columns = config.columns

    def _raw_rows(self) -> List[List[Any]]:
        sheet = require_sheet(self.store, self.config.sheet_name)
        rows = sheet.get_rows(self.config.data_range)
        present = [row for row in rows if row_has_data(row)]
        logger.debug("%d of %d timetable rows have data", len(present), len(rows))
        return present

    def timetable_data(self) -> List[List[str]]:
        return [self.mapper.serialize_row(row) for row in self._raw_rows()]

    def list_modules(self) -> List[ModuleRef]:
        seen = set()
        modules = []
        for row in self._raw_rows():
            record = self.mapper.to_record(row)
            if not record.module:
                continue
            key = (record.period, record.module)
            if key in seen:
                continue
            seen.add(key)
            modules.append(ModuleRef(period=record.period, module=record.module))
        return modules

    def list_periods(self) -> List[str]:
        periods = {self.mapper.to_record(row).period for row in self._raw_rows()}
        periods.discard("")
        return sorted(periods)

    def get_module_data(self, module: str, period: str) -> ModuleData:
        module = (module or "").strip()
        period = (period or "").strip()

        data = []
        grouped: Dict[str, List[List[str]]] = {}
        for row in self._raw_rows():
            values = self.mapper.serialize_row(row)
            record = self.mapper.record_from_serialized(values)
            if record.module != module or record.period != period:
                continue
            if record.is_individual:
                continue
            data.append(values)
            grouped.setdefault(record.group_label, []).append(values)

        groups = sorted(grouped, key=group_sort_key)
        week_col, period_col = self.columns.week, self.columns.period
        organized = {
            label: sorted(
                grouped[label],
                key=lambda r: (leading_int(r[week_col]), r[period_col].strip()),
            )
            for label in groups
        }
        logger.info("Module %s/%s: %d rows in %d groups", period, module, len(data), len(groups))
        return ModuleData(data=data, grouped_data=organized, groups=groups)

    def _directory(self, sheet_name: str, a1_range: str) -> List[str]:
        sheet = require_sheet(self.store, sheet_name)
        entries = []
        for row in sheet.get_rows(a1_range):
            if not row:
                continue
            value = self.mapper.serialize_cell(to_cell(row[0]), 0).strip()
            if value:
                entries.append(value)
        return entries

    def list_staff(self) -> List[str]:
        return self._directory(self.config.staff_sheet_name, self.config.staff_range)

    def list_rooms(self) -> List[str]:
        return self._directory(self.config.room_sheet_name, self.config.room_range)
