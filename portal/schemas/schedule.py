from typing import Any
from pydantic import BaseModel, Field


class DayHoursOut(BaseModel):
    isOpen: bool = False
    open: str = ""
    close: str = ""


class ScheduleOut(BaseModel):
    sameEveryDay: bool = False
    sameTimeSelectedDays: bool = False
    everyDayOpen: str = ""
    everyDayClose: str = ""
    selectedDaysOpen: str = ""
    selectedDaysClose: str = ""
    days: dict[str, DayHoursOut] = Field(default_factory=dict)


class HoursOut(BaseModel):
    open: str
    close: str


class ScheduleView(BaseModel):
    open247: bool
    schedule: ScheduleOut
    mode: str
    visible_controls: list[str]
    effective_hours: dict[str, HoursOut | None]


class ScheduleChangeIn(BaseModel):
    field_path: str = Field(..., min_length=1)
    value: bool | str | None = None


class FieldEditIn(BaseModel):
    path: str = Field(..., min_length=1)
    value: Any = None


class FieldEditOut(BaseModel):
    path: str
    value: Any = None


class ScheduleChangeOut(BaseModel):
    changes: list[FieldEditOut]
    mode: str
    visible_controls: list[str]
