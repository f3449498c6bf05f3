from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.database import Base

# 選課紀錄狀態
PENDING = "pending"
SELECTED = "selected"
LOTTERY = "lottery"
WAITING = "waiting"
FAILED = "failed"
DROPPED = "dropped"

SELECTION_STATUSES = (PENDING, SELECTED, LOTTERY, WAITING, FAILED, DROPPED)

# dropped / failed 可以重新選（沿用同一筆 row）
REOPENABLE_STATUSES = (DROPPED, FAILED)

# 時間衝突、學分計算只看這兩種
HOLDING_STATUSES = (SELECTED, PENDING)


class CourseSelection(Base):
    __tablename__ = "course_selections"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_selections_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=PENDING, index=True)

    selection_time = Column(DateTime)
    result_time = Column(DateTime)
    selected_at = Column(DateTime)

    remarks = Column(Text)
    admin_notes = Column(Text)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    course = relationship("Course", back_populates="selections")
