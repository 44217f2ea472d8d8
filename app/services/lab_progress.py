"""Lab requirement progress: one-way not_started -> completed, no approval step."""
from datetime import datetime
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.lab_requirement import LabRequirement
from app.models.student_lab_progress import StudentLabProgress
from app.services.errors import LabRequirementAlreadyCompleted, LabRequirementNotFound
from app.services.tracking_log import TrackingLogStore

import logging
logger = logging.getLogger("app.lab")

LAB_NOT_STARTED = "not_started"
LAB_COMPLETED = "completed"


class LabProgressLedger:
    def __init__(self, db: Session):
        self.db = db
        self.logs = TrackingLogStore(db)

    def list_requirements(self, active_only: bool = True) -> List[LabRequirement]:
        q = self.db.query(LabRequirement)
        if active_only:
            q = q.filter(LabRequirement.is_active.is_(True))
        return q.order_by(LabRequirement.order.asc(), LabRequirement.id.asc()).all()

    def list_student_progress(self, student_id: int) -> List[StudentLabProgress]:
        return (
            self.db.query(StudentLabProgress)
            .filter(StudentLabProgress.student_id == student_id)
            .order_by(StudentLabProgress.requirement_id.asc())
            .all()
        )

    def mark_complete(self, student_id: int, requirement_id: int, performed_by: int) -> StudentLabProgress:
        requirement = self._requirement(requirement_id)
        try:
            progress = (
                self.db.query(StudentLabProgress)
                .filter(
                    StudentLabProgress.student_id == student_id,
                    StudentLabProgress.requirement_id == requirement.id,
                )
                .with_for_update()
                .first()
            )
            if progress is not None and progress.status == LAB_COMPLETED:
                raise LabRequirementAlreadyCompleted(student_id, requirement_id)

            now = datetime.utcnow()
            if progress is None:
                progress = StudentLabProgress(student_id=student_id, requirement_id=requirement.id)
                self.db.add(progress)
            progress.status = LAB_COMPLETED
            progress.completed_at = now
            self.logs.append(
                student_id=student_id,
                requirement_id=requirement.id,
                action="complete_lab_requirement",
                previous_value=LAB_NOT_STARTED,
                new_value=LAB_COMPLETED,
                performed_by=performed_by,
                timestamp=now,
            )
            self.db.commit()
        except IntegrityError:
            # a concurrent request inserted the same key
            self.db.rollback()
            raise LabRequirementAlreadyCompleted(student_id, requirement_id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(progress)
        logger.info("[lab] student=%s requirement=%s completed", student_id, requirement_id)
        return progress

    def delete_requirement(self, requirement_id: int, performed_by: int) -> int:
        """Delete a requirement and every StudentLabProgress attached to it.

        Returns the number of progress rows removed.
        """
        requirement = self._requirement(requirement_id)
        try:
            removed = (
                self.db.query(StudentLabProgress)
                .filter(StudentLabProgress.requirement_id == requirement.id)
                .delete(synchronize_session=False)
            )
            self.db.delete(requirement)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("[lab] requirement=%s deleted by=%s, %d progress rows removed", requirement_id, performed_by, removed)
        return removed

    def _requirement(self, requirement_id: int) -> LabRequirement:
        requirement = self.db.query(LabRequirement).filter(LabRequirement.id == requirement_id).first()
        if not requirement:
            raise LabRequirementNotFound(requirement_id)
        return requirement
