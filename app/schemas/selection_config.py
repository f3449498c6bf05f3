from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator

ConfigStatus = Literal["draft", "active", "ended", "cancelled"]


class SelectionConfigCreate(BaseModel):
    semester: str
    academic_year: str
    round_number: int = Field(..., ge=1)
    round_name: str
    selection_method: Literal["first_come", "lottery"] = "first_come"
    start_time: datetime
    end_time: datetime
    max_credits: int = 2
    max_courses: int = 1
    allow_drop: bool = True
    allow_change: bool = True
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_window(self):
        if self.start_time > self.end_time:
            raise ValueError("start_time must not be later than end_time")
        return self


class SelectionConfigUpdate(BaseModel):
    round_name: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_credits: Optional[int] = None
    max_courses: Optional[int] = None
    allow_drop: Optional[bool] = None
    allow_change: Optional[bool] = None
    description: Optional[str] = None


class SelectionConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    semester: str
    academic_year: str
    round_number: int
    round_name: str
    selection_method: str
    start_time: datetime
    end_time: datetime
    max_credits: int
    max_courses: int
    allow_drop: bool
    allow_change: bool
    description: Optional[str] = None
    status: ConfigStatus
    created_by: Optional[int] = None
    created_at: datetime


class SelectionConfigListOut(BaseModel):
    items: list[SelectionConfigOut]
    total: int
    page: int
    page_size: int


class SelectionConfigCopy(BaseModel):
    # 沒給就沿用原設定的學期；round_number 沒給就取該學期最大輪次 + 1
    semester: Optional[str] = None
    academic_year: Optional[str] = None
    round_number: Optional[int] = Field(None, ge=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
