from sqlalchemy import Column, Integer, String, TIMESTAMP, DateTime
from datetime import datetime
from app.database import Base
from sqlalchemy import ForeignKey
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    # 一次性選擇，設定後不可更改
    selected_major_id = Column(Integer, ForeignKey("majors.id"), nullable=True, index=True)
    major_selected_at = Column(DateTime(timezone=False), nullable=True)

    current_semester_id = Column(Integer, ForeignKey("semesters.id"), nullable=True)
