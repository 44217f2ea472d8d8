from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict


class LabRequirementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    order: int


class LabProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    requirement_id: int
    status: Literal["not_started", "completed"]
    completed_at: Optional[datetime] = None
