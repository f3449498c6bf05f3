from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from app.database import Base


class AdminOperationLog(Base):
    __tablename__ = "admin_operation_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)

    # 操作者（管理員或學生本人）
    actor_id = Column(Integer, nullable=True, index=True)

    operation_type = Column(String(32), nullable=False, index=True)
    operation_module = Column(String(32), nullable=False, index=True)
    operation_description = Column(Text, nullable=False)

    target_type = Column(String(32))
    target_id = Column(String(64))

    # success / failure
    result = Column(String(16), nullable=False, default="success")

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
