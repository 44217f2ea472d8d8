from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict


class TrackingLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: Optional[int] = None
    requirement_id: Optional[int] = None
    action: str
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    performed_by: int
    timestamp: datetime


class TrackingLogListOut(BaseModel):
    items: List[TrackingLogOut]
    total: int
    page: int
    page_size: int
