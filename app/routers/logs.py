# app/routers/logs.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.operation_log import AdminOperationLog
from app.schemas.operation_log import OperationLogOut, OperationLogListOut
from app.utils.auth import require_admin


router = APIRouter(prefix="/admin/logs", tags=["Operation Logs"])


@router.get("", response_model=OperationLogListOut)
def list_logs(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    module: Optional[str] = Query(None, description="operation_module"),
    operation_type: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    q = db.query(AdminOperationLog)
    if module:
        q = q.filter(AdminOperationLog.operation_module == module)
    if operation_type:
        q = q.filter(AdminOperationLog.operation_type == operation_type)
    if actor_id is not None:
        q = q.filter(AdminOperationLog.actor_id == actor_id)

    total = q.count()
    rows = (
        q.order_by(AdminOperationLog.created_at.desc(), AdminOperationLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return OperationLogListOut(
        items=[OperationLogOut.model_validate(r) for r in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
