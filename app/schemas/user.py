from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class UserBase(BaseModel):
    username: str

class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=72)
    real_name: Optional[str] = None
    student_id: Optional[str] = None

class UserOut(UserBase):
    id: int
    role: str
    real_name: Optional[str] = None
    student_id: Optional[str] = None
    credit_limit: int
    model_config = ConfigDict(from_attributes=True)
