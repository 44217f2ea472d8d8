"""
Major gate: may a student see a semester's content, and the one-shot major pick.

``can_access`` is a pure decision. Access is denied exactly when the
semester requires a major and the student has none.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.major import Major
from app.models.semester import Semester
from app.models.student_semester import StudentSemester
from app.models.user import User
from app.services.catalog import CatalogStore
from app.services.errors import (
    MajorAlreadySelected,
    MajorNotFound,
    MajorSelectionBlocked,
    StudentNotFound,
)
from app.services.unlock_resolver import UnlockResolver

import logging
logger = logging.getLogger("app.majors")

MAJOR_REQUIRED_REASON = "A major must be selected before this semester can be accessed."


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    requires_major_selection: bool
    has_selected_major: bool
    reason: Optional[str] = None


def can_access(student: User, semester: Semester) -> GateDecision:
    requires = bool(semester.requires_major_selection)
    has_major = student.selected_major_id is not None
    if requires and not has_major:
        return GateDecision(
            allowed=False,
            requires_major_selection=True,
            has_selected_major=False,
            reason=MAJOR_REQUIRED_REASON,
        )
    return GateDecision(allowed=True, requires_major_selection=requires, has_selected_major=has_major)


def can_access_semester(db: Session, student_id: int, semester_id: int) -> GateDecision:
    student = _student(db, student_id)
    semester = CatalogStore(db).get_semester(semester_id)
    return can_access(student, semester)


def select_major(
    db: Session,
    student_id: int,
    major_id: int,
    resolver: Optional[UnlockResolver] = None,
) -> User:
    """Set the student's major. There is no way to change it afterwards."""
    try:
        student = db.query(User).filter(User.id == student_id).with_for_update().first()
        if not student:
            raise StudentNotFound(student_id)
        if student.selected_major_id is not None:
            raise MajorAlreadySelected(student.selected_major_id)

        major = db.query(Major).filter(Major.id == major_id).first()
        if not major or not major.is_active:
            raise MajorNotFound(major_id)

        reached_gate = (
            db.query(StudentSemester)
            .join(Semester, Semester.id == StudentSemester.semester_id)
            .filter(
                StudentSemester.student_id == student_id,
                Semester.requires_major_selection.is_(True),
            )
            .first()
        )
        if not reached_gate:
            raise MajorSelectionBlocked(student_id)

        student.selected_major_id = major.id
        student.major_selected_at = datetime.utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(student)
    logger.info("[majors] student=%s selected major=%s (%s)", student_id, major.id, major.code)

    resolver = resolver or UnlockResolver(db)
    unlocked = resolver.open_major_track(student_id, performed_by=student_id)
    if unlocked:
        logger.info("[majors] student=%s major track opened courses=%s", student_id, unlocked)
    return student


def _student(db: Session, student_id: int) -> User:
    student = db.query(User).filter(User.id == student_id).first()
    if not student:
        raise StudentNotFound(student_id)
    return student
