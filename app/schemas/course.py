from datetime import datetime, time
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict

SelectionWindowStatus = Literal["not_started", "ended", "full", "available"]


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_code: str
    name: str
    credits: int
    capacity: int
    enrolled_count: int
    remaining_slots: int
    day_of_week: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    venue: Optional[str] = None
    teacher_name: Optional[str] = None
    teacher_title: Optional[str] = None
    selection_start_time: Optional[datetime] = None
    selection_end_time: Optional[datetime] = None
    selection_status: SelectionWindowStatus


class TeacherOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    title: Optional[str] = None
    department: Optional[str] = None
    introduction: Optional[str] = None


class CourseListOut(BaseModel):
    items: list[CourseOut]
    total: int
    page: int
    page_size: int


class FavoriteCourseOut(CourseOut):
    favorite_time: datetime
    is_favorited: bool = True
