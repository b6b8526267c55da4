import datetime

import pytest

from settings import ColumnMap, TimetableConfig

COLUMNS = ColumnMap()


class FakeSheet:
    """In-memory stand-in for one spreadsheet tab."""

    def __init__(self, rows, first_row=2, fail_rows=()):
        self.rows = [list(r) for r in rows]
        self.first_row = first_row
        self.fail_rows = set(fail_rows)
        self.writes = []

    def get_rows(self, a1_range):
        return [list(r) for r in self.rows]

    def set_cell(self, row, column, value):
        from errors import BackendError

        if row in self.fail_rows:
            raise BackendError(f"write to row {row} rejected")
        self.writes.append((row, column, value))
        target = self.rows[row - self.first_row]
        if len(target) < column:
            target.extend([""] * (column - len(target)))
        target[column - 1] = value

    def cell(self, row, column):
        return self.rows[row - self.first_row][column - 1]


class FakeStore:
    def __init__(self, sheets):
        self.sheets = sheets

    def find_sheet(self, name):
        return self.sheets.get(name)


def make_row(**fields):
    row = [""] * COLUMNS.width
    for name, value in fields.items():
        row[getattr(COLUMNS, name)] = value
    return row


@pytest.fixture
def config():
    return TimetableConfig(spreadsheet_id="sheet-123")


@pytest.fixture
def timetable_rows():
    return [
        make_row(period="TP1", week="2", module="CS101", group="G3", location="Room A", uid="U1"),
        make_row(period="TP1", week="1", module="CS101", group="G3", location="Room A", uid="U2"),
        make_row(period="TP1", week=3, module="CS101", group="G10", location="Room B", uid="U3"),
        make_row(period="TP1", week="1", module="CS101", group="", location="Lab 1", uid="U4"),
        make_row(period="TP1", week="1", module="CS101", group="G3",
                 location="Individual (1-2-1)", uid="U5"),
        make_row(period="TP2", week="1", module="CS101", group="G1", location="Room A", uid="U6"),
        make_row(period="TP1", week="4", module="MA200", group="G1", location="Room C", uid="U7"),
        [""] * COLUMNS.width,
        make_row(period="TP2", week="2", module="MA200", group="G2", location="Room C", uid="U8"),
        make_row(period="TP1", week="5", module="", group="G1", uid="U9"),
    ]


@pytest.fixture
def calendar_rows():
    return [
        ["TP1", datetime.datetime(2024, 9, 2)],
        ["TP2", "2025-01-08"],
        ["", datetime.datetime(2025, 4, 1)],
        ["TP3", "not a date"],
        ["TP4", ""],
    ]


@pytest.fixture
def timetable_sheet(timetable_rows):
    return FakeSheet(timetable_rows)


@pytest.fixture
def store(timetable_sheet, calendar_rows):
    return FakeStore({
        "Timetable": timetable_sheet,
        "Academic Calendar": FakeSheet(calendar_rows),
        "HR": FakeSheet([["Alice"], [""], ["  Bob "], [None]]),
        "Facility": FakeSheet([["Room A"], ["Lab 1"], [""]]),
    })
