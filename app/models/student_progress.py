from sqlalchemy import Column, Integer, String, Text, JSON, ForeignKey, DateTime, UniqueConstraint, func
from app.database import Base

PROGRESS_STATUSES = (
    "locked",
    "not_started",
    "in_progress",
    "pending_approval",
    "completed",
    "rejected",
)


class StudentProgress(Base):
    __tablename__ = "student_progress"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_student_progress_student_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    completed_sessions = Column(Integer, nullable=False, default=0)
    projects_submitted = Column(Integer, nullable=False, default=0)
    project_links = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="locked", index=True)
    rejection_reason = Column(Text, nullable=True)

    approved_at = Column(DateTime(timezone=False), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    completed_at = Column(DateTime(timezone=False), nullable=True)

    created_at = Column(DateTime(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}
