from sqlalchemy import Column, Integer, Boolean, ForeignKey
from app.database import Base

class MajorCourse(Base):
    __tablename__ = "major_courses"
    major_id = Column(Integer, ForeignKey("majors.id", ondelete="CASCADE"), primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    order = Column(Integer, nullable=False, default=0)
    is_required = Column(Boolean, nullable=False, default=True)
