from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, func
from app.database import Base


class SelectionHistory(Base):
    """Append-only select/drop log. Rows are never updated."""

    __tablename__ = "selection_history"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    # select / drop
    action = Column(String(10), nullable=False)
    action_time = Column(DateTime, server_default=func.now(), nullable=False)

    semester = Column(String(20))
    academic_year = Column(String(20))
    remarks = Column(Text)
