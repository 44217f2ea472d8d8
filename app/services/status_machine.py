"""
Pure transition rules for StudentProgress.

Nothing in here touches the database. The ledger loads a record, asks these
functions what is allowed and what the next status is, then writes.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.services.errors import (
    AlreadyApproved,
    CountDecreaseNotAllowed,
    DuplicateProjectLink,
    InvalidProjectUrl,
    InvalidStatusTransition,
    NegativeCount,
    NotPendingApproval,
    ProjectsExceedRequired,
    RejectionReasonRequired,
    SessionsExceedRequired,
)

LOCKED = "locked"
NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
PENDING_APPROVAL = "pending_approval"
COMPLETED = "completed"
REJECTED = "rejected"

# statuses that accept session / project / link updates
UPDATABLE_STATUSES = (NOT_STARTED, IN_PROGRESS, PENDING_APPROVAL, REJECTED)

_http_url = TypeAdapter(AnyHttpUrl)


@dataclass(frozen=True)
class Requirements:
    required_sessions: int
    required_projects: int


@dataclass(frozen=True)
class Counts:
    completed_sessions: int
    projects_submitted: int


def meets_completion(counts: Counts, requirements: Requirements) -> bool:
    return (
        counts.completed_sessions == requirements.required_sessions
        and counts.projects_submitted == requirements.required_projects
    )


def next_status(current: str, counts: Counts, requirements: Requirements) -> str:
    """Status a record lands in after its counts changed.

    locked and completed records never move here; the ledger refuses count
    updates on them before this is called.
    """
    if current in (LOCKED, COMPLETED):
        return current
    if meets_completion(counts, requirements):
        return PENDING_APPROVAL
    return IN_PROGRESS


def ensure_updatable(current: str) -> None:
    if current == LOCKED:
        raise InvalidStatusTransition(current, IN_PROGRESS, "course is locked until its prerequisite is completed")
    if current == COMPLETED:
        raise InvalidStatusTransition(current, IN_PROGRESS, "completed progress cannot be edited")


def ensure_can_approve(current: str, student_id: int, course_id: int) -> None:
    if current == COMPLETED:
        raise AlreadyApproved(student_id, course_id)
    if current != PENDING_APPROVAL:
        raise NotPendingApproval(current)


def ensure_can_reject(current: str) -> None:
    if current != PENDING_APPROVAL:
        raise NotPendingApproval(current)


def clean_rejection_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise RejectionReasonRequired()
    return cleaned


def validate_count(
    field: str,
    value: int,
    current: int,
    required: int,
    allow_decrease: bool,
) -> None:
    if value < 0:
        raise NegativeCount(field, value)
    if value > required:
        if field == "completed_sessions":
            raise SessionsExceedRequired(value, required)
        raise ProjectsExceedRequired(value, required)
    if value < current and not allow_decrease:
        raise CountDecreaseNotAllowed(field, current, value)


def validate_project_url(url: str) -> str:
    if not isinstance(url, str) or not url.strip():
        raise InvalidProjectUrl(str(url))
    try:
        _http_url.validate_python(url.strip())
    except PydanticValidationError:
        raise InvalidProjectUrl(url)
    return url.strip()


def validate_project_links(urls: Sequence[str]) -> List[str]:
    """Validated, stripped links in the given order; a repeated link is an error."""
    cleaned: List[str] = []
    for url in urls:
        link = validate_project_url(url)
        if link in cleaned:
            raise DuplicateProjectLink(link)
        cleaned.append(link)
    return cleaned


def diff_links(old: Sequence[str], new: Sequence[str]) -> Tuple[List[str], List[str]]:
    """(added, removed), both in list order."""
    old_set = set(old)
    new_set = set(new)
    added = [link for link in new if link not in old_set]
    removed = [link for link in old if link not in new_set]
    return added, removed
