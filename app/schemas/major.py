from typing import Optional
from pydantic import BaseModel, ConfigDict


class MajorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    is_active: bool


class MajorCourseOut(BaseModel):
    course_id: int
    title: str
    semester_id: int
    order: int
    is_required: bool


class SelectMajorIn(BaseModel):
    major_id: int


class SelectedMajorOut(BaseModel):
    student_id: int
    major: MajorOut


class GateDecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    allowed: bool
    requires_major_selection: bool
    has_selected_major: bool
    reason: Optional[str] = None
