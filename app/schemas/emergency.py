from typing import Optional, Literal
from pydantic import BaseModel

AdjustAction = Literal["force_select", "force_drop", "move_to_waiting", "remove_from_waiting"]


class AdjustIn(BaseModel):
    user_id: Optional[int] = None
    course_id: Optional[int] = None
    # 不用 Literal，讓未知 action 走 service 的 INVALID_ACTION
    action: Optional[str] = None
    reason: Optional[str] = None


class BatchOperationIn(BaseModel):
    user_id: Optional[int] = None
    course_id: Optional[int] = None
    action: Optional[str] = None


class BatchIn(BaseModel):
    operations: list[BatchOperationIn] = []
    reason: Optional[str] = None


class OperationOutcomeOut(BaseModel):
    user_id: Optional[int] = None
    course_id: Optional[int] = None
    action: Optional[str] = None
    success: bool
    message: str


class BatchOut(BaseModel):
    total: int
    success_count: int
    failure_count: int
    results: list[OperationOutcomeOut]


class StopSelectionIn(BaseModel):
    reason: Optional[str] = None


class CleanupIn(BaseModel):
    cleanup_type: Literal["orphaned_records", "expired_waiting", "invalid_status"]
    confirm: bool = False
