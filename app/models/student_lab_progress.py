from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint, func
from app.database import Base

class StudentLabProgress(Base):
    __tablename__ = "student_lab_progress"
    __table_args__ = (
        UniqueConstraint("student_id", "requirement_id", name="uq_student_lab_progress"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requirement_id = Column(Integer, ForeignKey("lab_requirements.id", ondelete="CASCADE"), nullable=False, index=True)
    # not_started / completed
    status = Column(String(20), nullable=False, default="not_started")
    completed_at = Column(DateTime(timezone=False), nullable=True)
    created_at = Column(DateTime(timezone=False), server_default=func.now(), nullable=False)
