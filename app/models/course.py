from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base

class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        UniqueConstraint("semester_id", "order", name="uq_courses_semester_order"),
        CheckConstraint("required_sessions >= 1", name="ck_courses_required_sessions"),
        CheckConstraint("required_projects >= 0", name="ck_courses_required_projects"),
    )

    id = Column(Integer, primary_key=True, index=True)
    semester_id = Column(Integer, ForeignKey("semesters.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    order = Column(Integer, nullable=False)

    required_sessions = Column(Integer, nullable=False, default=10)
    required_projects = Column(Integer, nullable=False, default=1)

    is_active = Column(Boolean, nullable=False, default=True)

    # relationship
    semester = relationship("Semester", back_populates="courses")
