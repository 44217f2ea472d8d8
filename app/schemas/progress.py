from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

ProgressStatus = Literal["locked", "not_started", "in_progress", "pending_approval", "completed", "rejected"]


class ProgressPatch(BaseModel):
    completed_sessions: Optional[int] = None
    projects_submitted: Optional[int] = None
    # replaces the stored list; each link may appear once
    project_links: Optional[List[str]] = None


class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: int
    completed_sessions: int
    projects_submitted: int
    project_links: List[str] = []
    status: ProgressStatus
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RejectIn(BaseModel):
    reason: str = Field(..., max_length=500)


class ProgressKey(BaseModel):
    student_id: int
    course_id: int


class BulkApproveIn(BaseModel):
    items: List[ProgressKey]


class UnlockOutcomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: int
    unlocked_course_id: Optional[int] = None
    unlocked_semester_id: Optional[int] = None
    codes: List[str] = []
    error_code: Optional[str] = None
    error: Optional[str] = None


class ApprovalOut(BaseModel):
    progress: ProgressOut
    unlock: UnlockOutcomeOut


class BulkItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: int
    course_id: int
    success: bool
    code: Optional[str] = None
    error: Optional[str] = None


class BulkApproveOut(BaseModel):
    total: int
    succeeded: int
    failed: int
    code: Optional[str] = None
    results: List[BulkItemOut]
    failures: List[BulkItemOut]
