from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship
from app.database import Base


# 授課老師，只用來顯示在課程列表
class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, index=True)
    title = Column(String(50))
    department = Column(String(100))
    introduction = Column(Text)

    courses = relationship("Course", back_populates="teacher", order_by="Course.id")
