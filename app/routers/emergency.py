# app/routers/emergency.py
from dataclasses import asdict
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.emergency import AdjustIn, BatchIn, BatchOut, StopSelectionIn, CleanupIn
from app.services import emergency
from app.utils.auth import require_admin


router = APIRouter(prefix="/admin/emergency", tags=["Emergency"])


@router.post("/adjust")
def adjust(body: AdjustIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    result = emergency.adjust_selection(db, admin.id, body.user_id, body.course_id, body.action, body.reason)
    return {"success": True, "message": "Selection adjusted", "data": {"result": result.message}}


@router.post("/batch", response_model=BatchOut)
def batch(body: BatchIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    ops = [op.model_dump() for op in body.operations]
    result = emergency.batch_process(db, admin.id, ops, body.reason)
    return BatchOut(
        total=result.total,
        success_count=result.success_count,
        failure_count=result.failure_count,
        results=[asdict(r) for r in result.results],
    )


@router.post("/stop-selection")
def stop_selection(body: StopSelectionIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    stopped = emergency.stop_selection(db, admin.id, body.reason)
    return {"success": True, "message": "Course selection stopped", "data": {"stopped_configs": stopped}}


@router.post("/cleanup")
def cleanup(body: CleanupIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    affected = emergency.cleanup(db, admin.id, body.cleanup_type, body.confirm)
    return {
        "success": True,
        "message": "Cleanup finished",
        "data": {"cleanup_type": body.cleanup_type, "affected_rows": affected},
    }
