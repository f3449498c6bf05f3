from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base


class CourseSelectionConfig(Base):
    __tablename__ = "course_selection_config"
    __table_args__ = (
        UniqueConstraint("semester", "academic_year", "round_number", name="uq_selection_config_round"),
    )

    id = Column(Integer, primary_key=True, index=True)

    semester = Column(String(20), nullable=False)
    academic_year = Column(String(20), nullable=False)
    round_number = Column(Integer, nullable=False)
    round_name = Column(String(50), nullable=False)

    # first_come / lottery（lottery 只存設定，不實作抽籤）
    selection_method = Column(String(20), nullable=False, default="first_come")

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    max_credits = Column(Integer, nullable=False, default=2)
    max_courses = Column(Integer, nullable=False, default=1)
    allow_drop = Column(Boolean, nullable=False, default=True)
    allow_change = Column(Boolean, nullable=False, default=True)

    description = Column(Text)

    # draft / active / ended / cancelled
    status = Column(String(20), nullable=False, default="draft", index=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
