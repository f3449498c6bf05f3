from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP
from sqlalchemy.sql import func
from app.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    # student / teacher / admin
    role = Column(String(20), nullable=False, default="student")
    real_name = Column(String(50))
    student_id = Column(String(32), unique=True, nullable=True)

    # 學期選課學分上限
    credit_limit = Column(Integer, nullable=False, default=4)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
