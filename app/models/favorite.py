from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint, func
from app.database import Base


# 學生收藏的課程，跟選課紀錄無關
class CourseFavorite(Base):
    __tablename__ = "course_favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_favorites_user_course"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
