from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class UserBase(BaseModel):
    username: str

class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=72)

class UserLogin(BaseModel):
    username: str
    password: str

class UserOut(UserBase):
    id: int
    role: str
    selected_major_id: Optional[int] = None
    current_semester_id: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)
