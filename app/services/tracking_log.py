"""
Append-only audit trail of every progress mutation.

``append`` only stages the entry on the caller's session, so the entry is
committed (or rolled back) together with the change it describes.
"""
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from app.models.tracking_log import TRACKING_ACTIONS, TrackingLog

import logging
logger = logging.getLogger("app.tracking")


class TrackingLogStore:
    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        *,
        student_id: int,
        action: str,
        performed_by: int,
        course_id: Optional[int] = None,
        requirement_id: Optional[int] = None,
        previous_value: Any = None,
        new_value: Any = None,
        timestamp: Optional[datetime] = None,
    ) -> TrackingLog:
        if action not in TRACKING_ACTIONS:
            raise ValueError(f"unknown tracking action: {action}")
        entry = TrackingLog(
            student_id=student_id,
            course_id=course_id,
            requirement_id=requirement_id,
            action=action,
            previous_value=previous_value,
            new_value=new_value,
            performed_by=performed_by,
            timestamp=timestamp or datetime.utcnow(),
        )
        self.db.add(entry)
        logger.debug(
            "[tracking] %s student=%s course=%s by=%s %r -> %r",
            action, student_id, course_id, performed_by, previous_value, new_value,
        )
        return entry

    def query(
        self,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        performed_by: Optional[int] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TrackingLog]:
        q = self.db.query(TrackingLog)
        if student_id is not None:
            q = q.filter(TrackingLog.student_id == student_id)
        if course_id is not None:
            q = q.filter(TrackingLog.course_id == course_id)
        if performed_by is not None:
            q = q.filter(TrackingLog.performed_by == performed_by)
        if action is not None:
            q = q.filter(TrackingLog.action == action)
        q = q.order_by(TrackingLog.timestamp.asc(), TrackingLog.id.asc())
        if offset:
            q = q.offset(offset)
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def count(
        self,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        performed_by: Optional[int] = None,
        action: Optional[str] = None,
    ) -> int:
        q = self.db.query(TrackingLog)
        if student_id is not None:
            q = q.filter(TrackingLog.student_id == student_id)
        if course_id is not None:
            q = q.filter(TrackingLog.course_id == course_id)
        if performed_by is not None:
            q = q.filter(TrackingLog.performed_by == performed_by)
        if action is not None:
            q = q.filter(TrackingLog.action == action)
        return q.count()

    def for_key(self, student_id: int, course_id: int) -> List[TrackingLog]:
        return self.query(student_id=student_id, course_id=course_id)

    def for_student(self, student_id: int) -> List[TrackingLog]:
        return self.query(student_id=student_id)

    def for_course(self, course_id: int) -> List[TrackingLog]:
        return self.query(course_id=course_id)

    def by_admin(self, admin_id: int) -> List[TrackingLog]:
        return self.query(performed_by=admin_id)


def log_to_row(entry: TrackingLog) -> dict:
    """Flat dict for exports."""
    return {
        "id": entry.id,
        "timestamp": entry.timestamp,
        "student_id": entry.student_id,
        "course_id": entry.course_id,
        "requirement_id": entry.requirement_id,
        "action": entry.action,
        "previous_value": _cell(entry.previous_value),
        "new_value": _cell(entry.new_value),
        "performed_by": entry.performed_by,
    }


def _cell(value):
    if value is None or isinstance(value, (int, float, str)):
        return value
    return str(value)
