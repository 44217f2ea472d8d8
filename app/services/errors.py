"""
Engine error taxonomy.

Every failure the engine can raise carries a stable ``code`` (the name callers
match on), a human readable ``message`` and a ``details`` dict. The kind of
error decides the HTTP status the API layer answers with:

- ValidationError       400  bad input, nothing was written
- NotFoundError         404  referenced row does not exist
- StateConflictError    409  stored state does not allow the operation
- DataIntegrityError    500  catalog data breaks an ordering invariant

Cascade outcomes (NoNextCourse, NoNextSemester, UnlockFailed) and the bulk
summary code (BulkPassPartialFailure) are result values, not exceptions.
"""
from typing import Any, Dict, Optional

NO_NEXT_COURSE = "NoNextCourse"
NO_NEXT_SEMESTER = "NoNextSemester"
UNLOCK_FAILED = "UnlockFailed"
BULK_PASS_PARTIAL_FAILURE = "BulkPassPartialFailure"


class EngineError(Exception):
    code = "EngineError"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class ValidationError(EngineError):
    status_code = 400


class NotFoundError(EngineError):
    status_code = 404


class StateConflictError(EngineError):
    status_code = 409


class DataIntegrityError(EngineError):
    status_code = 500


# --- validation ---

class SessionsExceedRequired(ValidationError):
    code = "SessionsExceedRequired"

    def __init__(self, value: int, required: int):
        super().__init__(
            f"completed_sessions {value} exceeds required_sessions {required}",
            {"field": "completed_sessions", "value": value, "max": required},
        )


class ProjectsExceedRequired(ValidationError):
    code = "ProjectsExceedRequired"

    def __init__(self, value: int, required: int):
        super().__init__(
            f"projects_submitted {value} exceeds required_projects {required}",
            {"field": "projects_submitted", "value": value, "max": required},
        )


class NegativeCount(ValidationError):
    code = "NegativeCount"

    def __init__(self, field: str, value: int):
        super().__init__(f"{field} must not be negative", {"field": field, "value": value})


class CountDecreaseNotAllowed(ValidationError):
    code = "CountDecreaseNotAllowed"

    def __init__(self, field: str, current: int, value: int):
        super().__init__(
            f"{field} cannot go from {current} down to {value} without an admin correction",
            {"field": field, "current": current, "value": value},
        )


class InvalidProjectUrl(ValidationError):
    code = "InvalidProjectUrl"

    def __init__(self, url: str):
        super().__init__("project link must be an http or https URL", {"field": "project_links", "value": url})


class DuplicateProjectLink(ValidationError):
    code = "DuplicateProjectLink"

    def __init__(self, url: str):
        super().__init__("project link listed more than once", {"field": "project_links", "value": url})


class RejectionReasonRequired(ValidationError):
    code = "RejectionReasonRequired"

    def __init__(self):
        super().__init__("rejection reason must not be empty", {"field": "rejection_reason"})


class ApproverRequired(ValidationError):
    code = "ApproverRequired"

    def __init__(self):
        super().__init__("approved_by is required", {"field": "approved_by"})


class EmptyBulkRequest(ValidationError):
    code = "EmptyBulkRequest"

    def __init__(self):
        super().__init__("no (student_id, course_id) pairs given", {"field": "items"})


# --- state conflicts ---

class InvalidStatusTransition(StateConflictError):
    code = "InvalidStatusTransition"

    def __init__(self, current: str, target: str, reason: str = ""):
        msg = f"cannot move progress from {current} to {target}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg, {"current_status": current, "target_status": target})


class NotPendingApproval(StateConflictError):
    code = "NotPendingApproval"

    def __init__(self, current: str):
        super().__init__(
            "only progress awaiting approval can be adjudicated",
            {"current_status": current},
        )


class AlreadyApproved(StateConflictError):
    code = "AlreadyApproved"

    def __init__(self, student_id: int, course_id: int):
        super().__init__(
            "progress is already approved",
            {"student_id": student_id, "course_id": course_id},
        )


class MajorAlreadySelected(StateConflictError):
    code = "MajorAlreadySelected"

    def __init__(self, selected_major_id: int):
        super().__init__(
            "a major has already been selected and cannot be changed",
            {"selected_major_id": selected_major_id},
        )


class MajorSelectionBlocked(StateConflictError):
    code = "MajorSelectionBlocked"

    def __init__(self, student_id: int):
        super().__init__(
            "no semester requiring a major has been reached yet",
            {"student_id": student_id},
        )


class ConcurrentUpdate(StateConflictError):
    code = "ConcurrentUpdate"

    def __init__(self, student_id: int, course_id: int):
        super().__init__(
            "progress was modified by another request",
            {"student_id": student_id, "course_id": course_id},
        )


class LabRequirementAlreadyCompleted(StateConflictError):
    code = "LabRequirementAlreadyCompleted"

    def __init__(self, student_id: int, requirement_id: int):
        super().__init__(
            "lab requirement is already completed",
            {"student_id": student_id, "requirement_id": requirement_id},
        )


class TrackingLogImmutable(StateConflictError):
    code = "TrackingLogImmutable"

    def __init__(self, log_id, operation: str):
        super().__init__(
            f"tracking log entries cannot be modified ({operation})",
            {"log_id": log_id, "operation": operation},
        )


# --- not found ---

class ProgressNotFound(NotFoundError):
    code = "ProgressNotFound"

    def __init__(self, student_id: int, course_id: int):
        super().__init__("progress not found", {"student_id": student_id, "course_id": course_id})


class CourseNotFound(NotFoundError):
    code = "CourseNotFound"

    def __init__(self, course_id: int):
        super().__init__("course not found", {"course_id": course_id})


class SemesterNotFound(NotFoundError):
    code = "SemesterNotFound"

    def __init__(self, semester_id: int):
        super().__init__("semester not found", {"semester_id": semester_id})


class StudentNotFound(NotFoundError):
    code = "StudentNotFound"

    def __init__(self, student_id: int):
        super().__init__("student not found", {"student_id": student_id})


class MajorNotFound(NotFoundError):
    code = "MajorNotFound"

    def __init__(self, major_id: int):
        super().__init__("major not found or inactive", {"major_id": major_id})


class LabRequirementNotFound(NotFoundError):
    code = "LabRequirementNotFound"

    def __init__(self, requirement_id: int):
        super().__init__("lab requirement not found", {"requirement_id": requirement_id})


# --- catalog integrity ---

class DuplicateCourseOrder(DataIntegrityError):
    code = "DuplicateCourseOrder"

    def __init__(self, semester_id: int, order: int, course_ids):
        super().__init__(
            f"semester {semester_id} has several courses with order {order}",
            {"semester_id": semester_id, "order": order, "course_ids": list(course_ids)},
        )
