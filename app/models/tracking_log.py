from datetime import datetime

from sqlalchemy import Column, BigInteger, Integer, String, JSON, DateTime, ForeignKey, event
from app.database import Base
from app.services.errors import TrackingLogImmutable

TRACKING_ACTIONS = (
    "update_sessions",
    "update_projects",
    "add_project_link",
    "remove_project_link",
    "approve",
    "reject",
    "unlock_course",
    "unlock_semester",
    "unlock_failed",
    "complete_lab_requirement",
)


class TrackingLog(Base):
    __tablename__ = "tracking_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    # no FK: entries outlive the course / requirement they describe
    course_id = Column(Integer, nullable=True, index=True)
    requirement_id = Column(Integer, nullable=True, index=True)

    action = Column(String(32), nullable=False, index=True)
    previous_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    performed_by = Column(Integer, nullable=False, index=True)
    timestamp = Column(DateTime(timezone=False), nullable=False, default=datetime.utcnow, index=True)


@event.listens_for(TrackingLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise TrackingLogImmutable(target.id, "update")


@event.listens_for(TrackingLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise TrackingLogImmutable(target.id, "delete")
