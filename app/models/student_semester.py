from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.database import Base

class StudentSemester(Base):
    """A row means the semester is reachable for the student."""
    __tablename__ = "student_semesters"
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    semester_id = Column(Integer, ForeignKey("semesters.id", ondelete="CASCADE"), primary_key=True)
    unlocked_at = Column(DateTime(timezone=False), server_default=func.now(), nullable=False)
