from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from app.database import Base


class Semester(Base):
    __tablename__ = "semesters"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    order = Column(Integer, nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    requires_major_selection = Column(Boolean, nullable=False, default=False)

    courses = relationship("Course", back_populates="semester", order_by="Course.order")
