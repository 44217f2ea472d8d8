"""
Progress ledger: the only writer of StudentProgress.

Every single-key operation is one read-validate-write transaction. The row
is read with SELECT ... FOR UPDATE and the mapper's version column catches a
writer that slipped in anyway (surfaced as ConcurrentUpdate). Validation
always runs before the first attribute is touched, so a rejected call leaves
the record exactly as it was.

Approval is two-phase: the ``completed`` state and its log entry commit
first, then the unlock resolver runs in its own transaction.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.models.course import Course
from app.models.student_progress import StudentProgress
from app.models.student_semester import StudentSemester
from app.models.user import User
from app.schemas.progress import ProgressPatch
from app.services.catalog import CatalogStore
from app.services.errors import (
    BULK_PASS_PARTIAL_FAILURE,
    ApproverRequired,
    ConcurrentUpdate,
    EmptyBulkRequest,
    EngineError,
    ProgressNotFound,
    SemesterNotFound,
    StudentNotFound,
)
from app.services.notifier import Notifier, NotifierEvent, NullNotifier
from app.services.status_machine import (
    COMPLETED,
    LOCKED,
    NOT_STARTED,
    PENDING_APPROVAL,
    REJECTED,
    Counts,
    Requirements,
    clean_rejection_reason,
    diff_links,
    ensure_can_approve,
    ensure_can_reject,
    ensure_updatable,
    next_status,
    validate_count,
    validate_project_links,
)
from app.services.tracking_log import TrackingLogStore
from app.services.unlock_resolver import UnlockOutcome, UnlockResolver

import logging
logger = logging.getLogger("app.progress")


@dataclass
class ApprovalResult:
    progress: StudentProgress
    unlock: UnlockOutcome


@dataclass
class BulkItemResult:
    student_id: int
    course_id: int
    success: bool
    code: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BulkApproveResult:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[BulkItemResult] = field(default_factory=list)

    @property
    def failures(self) -> List[BulkItemResult]:
        return [r for r in self.results if not r.success]

    @property
    def code(self) -> Optional[str]:
        return BULK_PASS_PARTIAL_FAILURE if self.failed else None


class ProgressLedger:
    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        resolver: Optional[UnlockResolver] = None,
    ):
        self.db = db
        self.notifier = notifier or NullNotifier()
        self.catalog = CatalogStore(db)
        self.logs = TrackingLogStore(db)
        self.resolver = resolver or UnlockResolver(db, notifier=self.notifier)

    # ---- lookups / lifecycle ----

    def get_progress(self, student_id: int, course_id: int) -> StudentProgress:
        progress = self._find(student_id, course_id)
        if progress is None:
            raise ProgressNotFound(student_id, course_id)
        return progress

    def list_student_progress(self, student_id: int) -> List[StudentProgress]:
        return (
            self.db.query(StudentProgress)
            .join(Course, Course.id == StudentProgress.course_id)
            .filter(StudentProgress.student_id == student_id)
            .order_by(Course.semester_id.asc(), Course.order.asc())
            .all()
        )

    def list_pending_approval(self, course_id: Optional[int] = None) -> List[StudentProgress]:
        q = self.db.query(StudentProgress).filter(StudentProgress.status == PENDING_APPROVAL)
        if course_id is not None:
            q = q.filter(StudentProgress.course_id == course_id)
        return q.order_by(StudentProgress.updated_at.asc(), StudentProgress.id.asc()).all()

    def get_or_create_progress(self, student_id: int, course_id: int) -> StudentProgress:
        """Progress for (student, course), created on first access.

        A new record starts ``not_started`` when its prerequisite holds (the
        semester is reached and the previous applicable course is completed,
        or there is no previous course) and ``locked`` otherwise.
        """
        existing = self._find(student_id, course_id)
        if existing is not None:
            return existing

        student = self._student(student_id)
        course = self.catalog.get_course(course_id)
        progress = StudentProgress(
            student_id=student_id,
            course_id=course_id,
            completed_sessions=0,
            projects_submitted=0,
            project_links=[],
            status=self._initial_status(student, course),
        )
        self.db.add(progress)
        try:
            self.db.commit()
        except IntegrityError:
            # another request created it first
            self.db.rollback()
            return self.get_progress(student_id, course_id)
        self.db.refresh(progress)
        logger.info("[progress] created student=%s course=%s status=%s", student_id, course_id, progress.status)
        return progress

    def enroll_student(self, student_id: int) -> List[StudentProgress]:
        """Reach the first semester and create progress for its courses."""
        student = self._student(student_id)
        first = self.catalog.get_first_semester()
        if first is None:
            raise SemesterNotFound(0)

        try:
            reached = (
                self.db.query(StudentSemester)
                .filter(StudentSemester.student_id == student_id, StudentSemester.semester_id == first.id)
                .first()
            )
            if not reached:
                self.db.add(StudentSemester(student_id=student_id, semester_id=first.id))
                if student.current_semester_id is None:
                    student.current_semester_id = first.id
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        rows = []
        for item in self.catalog.applicable_courses(first.id, student.selected_major_id):
            rows.append(self.get_or_create_progress(student_id, item.course.id))
        logger.info("[progress] enrolled student=%s semester=%s courses=%d", student_id, first.id, len(rows))
        return rows

    # ---- mutations ----

    def update_progress(
        self,
        student_id: int,
        course_id: int,
        patch: ProgressPatch,
        performed_by: int,
        allow_decrease: bool = False,
    ) -> StudentProgress:
        """Apply new session / project counts and project links.

        ``allow_decrease`` marks an admin correction: counts may go down and
        a pending record may fall back to ``in_progress``.
        """
        course = self.catalog.get_course(course_id)
        self.get_or_create_progress(student_id, course_id)

        try:
            progress = self._lock(student_id, course_id)
            ensure_updatable(progress.status)
            requirements = Requirements(course.required_sessions, course.required_projects)

            sessions = progress.completed_sessions
            projects = progress.projects_submitted
            if patch.completed_sessions is not None:
                validate_count(
                    "completed_sessions", patch.completed_sessions, sessions,
                    requirements.required_sessions, allow_decrease,
                )
                sessions = patch.completed_sessions
            if patch.projects_submitted is not None:
                validate_count(
                    "projects_submitted", patch.projects_submitted, projects,
                    requirements.required_projects, allow_decrease,
                )
                projects = patch.projects_submitted

            old_links = list(progress.project_links or [])
            new_links = old_links
            if patch.project_links is not None:
                new_links = validate_project_links(patch.project_links)
            added, removed = diff_links(old_links, new_links)

            if (
                sessions == progress.completed_sessions
                and projects == progress.projects_submitted
                and not added
                and not removed
            ):
                self.db.commit()
                return progress

            now = datetime.utcnow()
            key = {"student_id": student_id, "course_id": course_id, "performed_by": performed_by, "timestamp": now}
            if sessions != progress.completed_sessions:
                self.logs.append(
                    action="update_sessions", previous_value=progress.completed_sessions, new_value=sessions, **key
                )
            if projects != progress.projects_submitted:
                self.logs.append(
                    action="update_projects", previous_value=progress.projects_submitted, new_value=projects, **key
                )
            for link in added:
                self.logs.append(action="add_project_link", previous_value=None, new_value=link, **key)
            for link in removed:
                self.logs.append(action="remove_project_link", previous_value=link, new_value=None, **key)

            previous_status = progress.status
            progress.completed_sessions = sessions
            progress.projects_submitted = projects
            progress.project_links = list(new_links)
            progress.status = next_status(previous_status, Counts(sessions, projects), requirements)
            if progress.status != REJECTED:
                progress.rejection_reason = None
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdate(student_id, course_id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(progress)
        logger.info(
            "[progress] update student=%s course=%s sessions=%s projects=%s links=%d %s->%s by=%s",
            student_id, course_id, sessions, projects, len(new_links), previous_status, progress.status, performed_by,
        )
        return progress

    def approve(self, student_id: int, course_id: int, approved_by: Optional[int]) -> ApprovalResult:
        if not approved_by:
            raise ApproverRequired()

        try:
            progress = self._lock(student_id, course_id)
            ensure_can_approve(progress.status, student_id, course_id)

            now = datetime.utcnow()
            previous_status = progress.status
            progress.status = COMPLETED
            progress.approved_at = now
            progress.approved_by = approved_by
            progress.completed_at = now
            progress.rejection_reason = None
            self.logs.append(
                student_id=student_id,
                course_id=course_id,
                action="approve",
                previous_value=previous_status,
                new_value=COMPLETED,
                performed_by=approved_by,
                timestamp=now,
            )
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdate(student_id, course_id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(progress)
        logger.info("[progress] approved student=%s course=%s by=%s", student_id, course_id, approved_by)
        self.notifier.emit(
            NotifierEvent(
                type="approve",
                student_id=student_id,
                target_id=course_id,
                timestamp=now,
                title="Course completed",
                message="Your course completion was approved.",
            )
        )

        unlock = self.resolver.resolve(student_id, course_id, performed_by=approved_by)
        self.db.refresh(progress)
        return ApprovalResult(progress=progress, unlock=unlock)

    def reject(self, student_id: int, course_id: int, rejection_reason: Optional[str], performed_by: int) -> StudentProgress:
        reason = clean_rejection_reason(rejection_reason)

        try:
            progress = self._lock(student_id, course_id)
            ensure_can_reject(progress.status)

            now = datetime.utcnow()
            previous_status = progress.status
            progress.status = REJECTED
            progress.rejection_reason = reason
            self.logs.append(
                student_id=student_id,
                course_id=course_id,
                action="reject",
                previous_value=previous_status,
                new_value={"status": REJECTED, "reason": reason},
                performed_by=performed_by,
                timestamp=now,
            )
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdate(student_id, course_id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(progress)
        logger.info("[progress] rejected student=%s course=%s by=%s", student_id, course_id, performed_by)
        self.notifier.emit(
            NotifierEvent(
                type="reject",
                student_id=student_id,
                target_id=course_id,
                timestamp=now,
                title="Course submission rejected",
                message=reason,
            )
        )
        return progress

    def bulk_approve(self, pairs: Iterable[Tuple[int, int]], approved_by: Optional[int]) -> BulkApproveResult:
        """Approve each pair on its own; one failure never blocks the rest."""
        pairs = list(pairs)
        if not pairs:
            raise EmptyBulkRequest()
        if not approved_by:
            raise ApproverRequired()

        result = BulkApproveResult(total=len(pairs))
        for student_id, course_id in pairs:
            try:
                self.approve(student_id, course_id, approved_by)
            except EngineError as exc:
                result.results.append(BulkItemResult(student_id, course_id, False, exc.code, exc.message))
            except Exception as exc:
                # unexpected failure on one pair; the rest still run
                logger.exception("[progress] bulk approve failed student=%s course=%s", student_id, course_id)
                result.results.append(BulkItemResult(student_id, course_id, False, type(exc).__name__, str(exc)))
            else:
                result.results.append(BulkItemResult(student_id, course_id, True))

        result.succeeded = sum(1 for r in result.results if r.success)
        result.failed = result.total - result.succeeded
        if result.failed:
            logger.warning("[progress] bulk approve %d/%d failed", result.failed, result.total)
        return result

    # ---- helpers ----

    def _find(self, student_id: int, course_id: int) -> Optional[StudentProgress]:
        return (
            self.db.query(StudentProgress)
            .filter(StudentProgress.student_id == student_id, StudentProgress.course_id == course_id)
            .first()
        )

    def _lock(self, student_id: int, course_id: int) -> StudentProgress:
        progress = (
            self.db.query(StudentProgress)
            .filter(StudentProgress.student_id == student_id, StudentProgress.course_id == course_id)
            .with_for_update()
            .first()
        )
        if progress is None:
            raise ProgressNotFound(student_id, course_id)
        return progress

    def _student(self, student_id: int) -> User:
        student = self.db.query(User).filter(User.id == student_id).first()
        if not student:
            raise StudentNotFound(student_id)
        return student

    def _initial_status(self, student: User, course: Course) -> str:
        reached = (
            self.db.query(StudentSemester)
            .filter(StudentSemester.student_id == student.id, StudentSemester.semester_id == course.semester_id)
            .first()
        )
        if not reached:
            return LOCKED
        previous = self.catalog.get_previous_course_in_semester(
            course.semester_id, course.order, student.selected_major_id
        )
        if previous is None:
            return NOT_STARTED
        prev_progress = self._find(student.id, previous.id)
        if prev_progress is not None and prev_progress.status == COMPLETED:
            return NOT_STARTED
        return LOCKED

