# app/services/audit.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models.operation_log import AdminOperationLog

logger = logging.getLogger("app.audit")


def log_operation(
    db: Session,
    actor_id: Optional[int],
    operation_type: str,
    module: str,
    description: str,
    *,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    result: str = "success",
) -> None:
    """
    Best-effort audit write.

    用獨立 session（同一個 engine、另一條連線）寫入，不會加入呼叫端的交易；
    呼叫端要在自己的交易 commit / rollback 之後才呼叫。寫入失敗只記錄 log。
    """
    try:
        with Session(bind=db.get_bind()) as log_db:
            log_db.add(AdminOperationLog(
                actor_id=actor_id,
                operation_type=operation_type,
                operation_module=module,
                operation_description=description,
                target_type=target_type,
                target_id=target_id,
                result=result,
            ))
            log_db.commit()
    except Exception:
        logger.exception("Failed to write operation log: %s", description)
