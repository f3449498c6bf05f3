from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class OperationLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: Optional[int] = None
    operation_type: str
    operation_module: str
    operation_description: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    result: str
    created_at: datetime


class OperationLogListOut(BaseModel):
    items: list[OperationLogOut]
    total: int
    page: int
    page_size: int
