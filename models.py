from datetime import date, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

INDIVIDUAL_LOCATION = "Individual (1-2-1)"
NO_GROUP = "No Group"


# Cell values, normalized once when a raw sheet row is read
class Empty(BaseModel):
    model_config = {"frozen": True}


class Text(BaseModel):
    value: str
    model_config = {"frozen": True}


class Number(BaseModel):
    value: float
    model_config = {"frozen": True}


class DateTime(BaseModel):
    value: datetime
    model_config = {"frozen": True}


CellValue = Union[Empty, Text, Number, DateTime]


class SessionRecord(BaseModel):
    period: str = ""
    week: str = ""
    module: str = ""
    topic: str = ""
    location: str = ""
    group: str = ""
    hours: str = ""
    staff: str = ""
    room: str = ""
    day: str = ""
    time: str = ""
    date: str = ""
    uid: str = ""

    @property
    def is_individual(self) -> bool:
        return self.location == INDIVIDUAL_LOCATION

    @property
    def group_label(self) -> str:
        return self.group or NO_GROUP


class ModuleRef(BaseModel):
    period: str
    module: str


class CalendarEntry(BaseModel):
    period: str
    start_date: date

    def to_payload(self) -> Dict[str, str]:
        return {"period": self.period, "startDate": self.start_date.isoformat()}


class ResolvedDate(BaseModel):
    value: date

    @property
    def formatted(self) -> str:
        return self.value.isoformat()


class ModuleData(BaseModel):
    data: List[List[str]]
    grouped_data: Dict[str, List[List[str]]]
    groups: List[str]


class BatchChange(BaseModel):
    uid: str
    staff: Optional[str] = None
    room: Optional[str] = None
    day: Optional[str] = None
    time: Optional[str] = None
    period: Optional[str] = None
    week: Optional[Union[int, str]] = None


class BatchResult(BaseModel):
    updated: int
    total: int
    errors: List[str] = Field(default_factory=list)
