"""
Unlock cascade: what becomes reachable after a course is completed.

Runs as its own transaction after the approval commit. Anything that goes
wrong in here is rolled back, written to the tracking log as
``unlock_failed`` and reported in the outcome; the approval stays. Running
``resolve`` again for the same completed course is a no-op once its
successor is unlocked.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.course import Course
from app.models.semester import Semester
from app.models.student_progress import StudentProgress
from app.models.student_semester import StudentSemester
from app.models.user import User
from app.services.catalog import CatalogStore
from app.services.errors import (
    NO_NEXT_COURSE,
    NO_NEXT_SEMESTER,
    UNLOCK_FAILED,
    EngineError,
    InvalidStatusTransition,
    ProgressNotFound,
    StudentNotFound,
)
from app.services.notifier import Notifier, NotifierEvent, NullNotifier
from app.services.status_machine import COMPLETED, LOCKED, NOT_STARTED
from app.services.tracking_log import TrackingLogStore

import logging
logger = logging.getLogger("app.unlock")

# performed_by for cascades nobody triggered by hand
SYSTEM_ACTOR = 0


@dataclass
class UnlockOutcome:
    course_id: int
    unlocked_course_id: Optional[int] = None
    unlocked_semester_id: Optional[int] = None
    codes: List[str] = field(default_factory=list)
    error_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return UNLOCK_FAILED in self.codes


class UnlockResolver:
    def __init__(self, db: Session, notifier: Optional[Notifier] = None):
        self.db = db
        self.catalog = CatalogStore(db)
        self.logs = TrackingLogStore(db)
        self.notifier = notifier or NullNotifier()

    def resolve(self, student_id: int, course_id: int, performed_by: int = SYSTEM_ACTOR) -> UnlockOutcome:
        progress = self._progress(student_id, course_id)
        if progress is None:
            raise ProgressNotFound(student_id, course_id)
        if progress.status != COMPLETED:
            raise InvalidStatusTransition(progress.status, "unlock", "only completed courses unlock their successors")

        outcome = UnlockOutcome(course_id=course_id)
        events: List[NotifierEvent] = []
        try:
            self._cascade(student_id, course_id, performed_by, outcome, events)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.exception("[unlock] cascade failed student=%s course=%s", student_id, course_id)
            outcome.unlocked_course_id = None
            outcome.unlocked_semester_id = None
            outcome.codes.append(UNLOCK_FAILED)
            outcome.error_code = exc.code if isinstance(exc, EngineError) else type(exc).__name__
            outcome.error = str(exc)
            self._record_failure(student_id, course_id, performed_by, outcome)
            return outcome

        self.notifier.emit_all(events)
        logger.info(
            "[unlock] student=%s course=%s -> course=%s semester=%s codes=%s",
            student_id, course_id, outcome.unlocked_course_id, outcome.unlocked_semester_id, outcome.codes,
        )
        return outcome

    def open_major_track(self, student_id: int, performed_by: int) -> List[int]:
        """Unlock the entry course of every reached semester gated on a major.

        Called once a major is picked, so the major's own course list in an
        already reached semester has a starting point.
        """
        student = self._student(student_id)
        unlocked: List[int] = []
        events: List[NotifierEvent] = []
        try:
            semesters = (
                self.db.query(Semester)
                .join(StudentSemester, StudentSemester.semester_id == Semester.id)
                .filter(
                    StudentSemester.student_id == student_id,
                    Semester.requires_major_selection.is_(True),
                )
                .order_by(Semester.order.asc())
                .all()
            )
            for semester in semesters:
                first = self.catalog.get_first_course_in_semester(semester.id, student.selected_major_id)
                if first and self._unlock_course(student_id, first, performed_by, events):
                    unlocked.append(first.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.notifier.emit_all(events)
        return unlocked

    def _cascade(self, student_id, course_id, performed_by, outcome, events):
        student = self._student(student_id)
        course = self.catalog.get_course(course_id)
        major_id = student.selected_major_id

        next_course = self.catalog.get_next_course_in_semester(course.semester_id, course.order, major_id)
        if next_course is not None:
            if self._unlock_course(student_id, next_course, performed_by, events):
                outcome.unlocked_course_id = next_course.id
            return

        outcome.codes.append(NO_NEXT_COURSE)

        applicable = self.catalog.applicable_courses(course.semester_id, major_id)
        required_ids = [item.course.id for item in applicable if item.is_required]
        if not self._all_completed(student_id, required_ids):
            return

        semester = self.catalog.get_semester(course.semester_id)
        next_semester = self.catalog.get_next_semester(semester.order)
        if next_semester is None:
            outcome.codes.append(NO_NEXT_SEMESTER)
            return

        if self._reach_semester(student, semester, next_semester, course_id, performed_by, events):
            outcome.unlocked_semester_id = next_semester.id

        first = self.catalog.get_first_course_in_semester(next_semester.id, major_id)
        if first is not None and self._unlock_course(student_id, first, performed_by, events):
            outcome.unlocked_course_id = first.id

    def _unlock_course(self, student_id: int, course: Course, performed_by: int, events) -> bool:
        progress = (
            self.db.query(StudentProgress)
            .filter(StudentProgress.student_id == student_id, StudentProgress.course_id == course.id)
            .with_for_update()
            .first()
        )
        now = datetime.utcnow()
        if progress is None:
            previous = None
            self.db.add(
                StudentProgress(
                    student_id=student_id,
                    course_id=course.id,
                    completed_sessions=0,
                    projects_submitted=0,
                    project_links=[],
                    status=NOT_STARTED,
                )
            )
        elif progress.status == LOCKED:
            previous = LOCKED
            progress.status = NOT_STARTED
        else:
            return False

        self.logs.append(
            student_id=student_id,
            course_id=course.id,
            action="unlock_course",
            previous_value=previous,
            new_value=NOT_STARTED,
            performed_by=performed_by,
            timestamp=now,
        )
        events.append(
            NotifierEvent(
                type="unlock",
                student_id=student_id,
                target_id=course.id,
                timestamp=now,
                title="Course unlocked",
                message=f'"{course.title}" is now open.',
            )
        )
        return True

    def _reach_semester(self, student, current, next_semester, course_id, performed_by, events) -> bool:
        exists = (
            self.db.query(StudentSemester)
            .filter(StudentSemester.student_id == student.id, StudentSemester.semester_id == next_semester.id)
            .first()
        )
        if exists:
            return False

        now = datetime.utcnow()
        self.db.add(StudentSemester(student_id=student.id, semester_id=next_semester.id, unlocked_at=now))
        student.current_semester_id = next_semester.id
        self.logs.append(
            student_id=student.id,
            course_id=course_id,
            action="unlock_semester",
            previous_value=current.id,
            new_value=next_semester.id,
            performed_by=performed_by,
            timestamp=now,
        )
        message = f'"{next_semester.name}" is now open.'
        if next_semester.requires_major_selection and student.selected_major_id is None:
            message += " Select a major to access its courses."
        events.append(
            NotifierEvent(
                type="unlock",
                student_id=student.id,
                target_id=next_semester.id,
                timestamp=now,
                title="Semester unlocked",
                message=message,
            )
        )
        return True

    def _all_completed(self, student_id: int, course_ids: List[int]) -> bool:
        if not course_ids:
            return True
        done = (
            self.db.query(StudentProgress.course_id)
            .filter(
                StudentProgress.student_id == student_id,
                StudentProgress.course_id.in_(course_ids),
                StudentProgress.status == COMPLETED,
            )
            .count()
        )
        return done == len(set(course_ids))

    def _record_failure(self, student_id, course_id, performed_by, outcome: UnlockOutcome) -> None:
        try:
            self.logs.append(
                student_id=student_id,
                course_id=course_id,
                action="unlock_failed",
                previous_value=None,
                new_value={"code": outcome.error_code, "error": outcome.error},
                performed_by=performed_by,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("[unlock] could not record failure student=%s course=%s", student_id, course_id)

    def _progress(self, student_id: int, course_id: int) -> Optional[StudentProgress]:
        return (
            self.db.query(StudentProgress)
            .filter(StudentProgress.student_id == student_id, StudentProgress.course_id == course_id)
            .first()
        )

    def _student(self, student_id: int) -> User:
        student = self.db.query(User).filter(User.id == student_id).first()
        if not student:
            raise StudentNotFound(student_id)
        return student
