from datetime import datetime, time
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict

SelectionStatus = Literal["pending", "selected", "lottery", "waiting", "failed", "dropped"]


class SelectionIn(BaseModel):
    course_id: Optional[int] = None


class SelectionResultOut(BaseModel):
    course_id: int
    status: SelectionStatus


class PeriodOut(BaseModel):
    open: bool
    reason: str
    config_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class ConflictCheckOut(BaseModel):
    course_id: int
    time_conflict: bool
    time_detail: str = ""
    credit_conflict: bool
    credit_detail: str = ""


class MySelectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    course_code: str
    course_name: str
    credits: int
    status: SelectionStatus
    day_of_week: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    venue: Optional[str] = None
    teacher_name: Optional[str] = None
    selection_time: Optional[datetime] = None
    result_time: Optional[datetime] = None


class MySelectionListOut(BaseModel):
    selections: list[MySelectionOut]
    status_counts: dict[str, int]


class HistoryOut(BaseModel):
    action: Literal["select", "drop"]
    action_time: datetime
    semester: Optional[str] = None
    academic_year: Optional[str] = None
    course_id: int
    course_code: str
    course_name: str
    credits: int
