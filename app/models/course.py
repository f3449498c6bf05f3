from sqlalchemy import Column, Integer, String, Text, Time, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_courses_capacity"),
        CheckConstraint("enrolled_count >= 0", name="ck_courses_enrolled_count"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_code = Column(String(20), unique=True, nullable=False)

    name = Column(String(100), nullable=False)
    description = Column(Text)

    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    venue = Column(String(100))

    credits = Column(Integer, nullable=False, default=1)
    capacity = Column(Integer, nullable=False, default=0)
    # 已選人數：只能在鎖住 course row 的交易裡改
    enrolled_count = Column(Integer, nullable=False, default=0)

    # 1~7 (Mon~Sun)
    day_of_week = Column(Integer)
    start_time = Column(Time)
    end_time = Column(Time)

    # draft / published / closed
    status = Column(String(20), nullable=False, default="draft", index=True)

    # 課程自己的選課時間（可不設，不設就只看選課期間設定）
    selection_start_time = Column(DateTime)
    selection_end_time = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    # relationship
    teacher = relationship("Teacher", back_populates="courses")
    selections = relationship("CourseSelection", back_populates="course")
