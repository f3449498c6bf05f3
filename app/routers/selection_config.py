# app/routers/selection_config.py
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.selection_config import CourseSelectionConfig
from app.schemas.selection_config import (
    SelectionConfigCreate,
    SelectionConfigUpdate,
    SelectionConfigCopy,
    SelectionConfigOut,
    SelectionConfigListOut,
    ConfigStatus,
)
from app.services.audit import log_operation
from app.utils.auth import require_admin
from app.utils.errors import ValidationError, ConflictError, NotFoundError
from app.utils.selection_period import current_config

import logging
logger = logging.getLogger("app.selection_config")


router = APIRouter(prefix="/admin/selection-configs", tags=["Selection Config"])

# active 之後只能改這些
ACTIVE_EDITABLE = {"description", "end_time"}


def _get_or_404(db: Session, config_id: int) -> CourseSelectionConfig:
    config = db.query(CourseSelectionConfig).filter(CourseSelectionConfig.id == config_id).first()
    if not config:
        raise NotFoundError("CONFIG_NOT_FOUND", "Selection configuration not found")
    return config


def _label(config: CourseSelectionConfig) -> str:
    return f"{config.academic_year} {config.semester} round {config.round_number}"


def _overlapping(db: Session, semester: str, academic_year: str, start: datetime, end: datetime, exclude_id=None):
    # 同學期未取消的設定，時間區間不能重疊
    q = db.query(CourseSelectionConfig.id).filter(
        CourseSelectionConfig.semester == semester,
        CourseSelectionConfig.academic_year == academic_year,
        CourseSelectionConfig.status != "cancelled",
        and_(CourseSelectionConfig.start_time <= end, CourseSelectionConfig.end_time >= start),
    )
    if exclude_id is not None:
        q = q.filter(CourseSelectionConfig.id != exclude_id)
    return q.first()


@router.get("", response_model=SelectionConfigListOut)
def list_configs(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    semester: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    status: Optional[ConfigStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    q = db.query(CourseSelectionConfig)
    if semester:
        q = q.filter(CourseSelectionConfig.semester == semester)
    if academic_year:
        q = q.filter(CourseSelectionConfig.academic_year == academic_year)
    if status:
        q = q.filter(CourseSelectionConfig.status == status)

    total = q.count()
    rows = (
        q.order_by(
            CourseSelectionConfig.academic_year.desc(),
            CourseSelectionConfig.semester.desc(),
            CourseSelectionConfig.round_number.asc(),
        )
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return SelectionConfigListOut(
        items=[SelectionConfigOut.model_validate(r) for r in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


# 目前生效中的設定（沒有就回 null）
@router.get("/current", response_model=Optional[SelectionConfigOut])
def get_current(db: Session = Depends(get_db), admin=Depends(require_admin)):
    return current_config(db)


@router.get("/{config_id}", response_model=SelectionConfigOut)
def get_config(config_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return _get_or_404(db, config_id)


@router.post("", response_model=SelectionConfigOut)
def create_config(body: SelectionConfigCreate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    dup = db.query(CourseSelectionConfig.id).filter(
        CourseSelectionConfig.semester == body.semester,
        CourseSelectionConfig.academic_year == body.academic_year,
        CourseSelectionConfig.round_number == body.round_number,
    ).first()
    if dup:
        raise ConflictError("CONFIG_EXISTS", "Selection configuration for this round already exists")

    if _overlapping(db, body.semester, body.academic_year, body.start_time, body.end_time):
        raise ConflictError("CONFIG_TIME_CONFLICT", "Selection window overlaps another configuration")

    config = CourseSelectionConfig(**body.model_dump(), status="draft", created_by=admin.id)
    db.add(config)
    db.commit()
    db.refresh(config)

    log_operation(db, admin.id, "create", "selection_config", f"Create selection config: {_label(config)}",
                  target_type="selection_config", target_id=str(config.id))
    return config


@router.put("/{config_id}", response_model=SelectionConfigOut)
def update_config(
    config_id: int,
    body: SelectionConfigUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    config = _get_or_404(db, config_id)
    data = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}

    if config.status in ("ended", "cancelled"):
        raise ConflictError("CONFIG_CLOSED", "Ended or cancelled configurations cannot be changed")

    if config.status == "active":
        blocked = set(data) - ACTIVE_EDITABLE
        if blocked:
            raise ConflictError("CONFIG_ACTIVE", f"Active configuration cannot change: {', '.join(sorted(blocked))}")

    start = data.get("start_time", config.start_time)
    end = data.get("end_time", config.end_time)
    if start > end:
        raise ValidationError("INVALID_WINDOW", "start_time must not be later than end_time")
    if _overlapping(db, config.semester, config.academic_year, start, end, exclude_id=config.id):
        raise ConflictError("CONFIG_TIME_CONFLICT", "Selection window overlaps another configuration")

    for k, v in data.items():
        setattr(config, k, v)
    db.commit()
    db.refresh(config)

    log_operation(db, admin.id, "update", "selection_config", f"Update selection config: {_label(config)}",
                  target_type="selection_config", target_id=str(config.id))
    return config


@router.post("/{config_id}/activate", response_model=SelectionConfigOut)
def activate_config(config_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    config = _get_or_404(db, config_id)

    if config.status != "draft":
        raise ConflictError("CONFIG_NOT_DRAFT", "Only draft configurations can be activated")

    # 同一學期只能有一筆 active
    other = db.query(CourseSelectionConfig.id).filter(
        CourseSelectionConfig.semester == config.semester,
        CourseSelectionConfig.academic_year == config.academic_year,
        CourseSelectionConfig.status == "active",
        CourseSelectionConfig.id != config.id,
    ).first()
    if other:
        raise ConflictError("CONFIG_ALREADY_ACTIVE", "Another configuration of this term is active, end it first")

    if config.end_time < datetime.now():
        raise ConflictError("CONFIG_EXPIRED", "Selection end time has passed")

    config.status = "active"
    db.commit()
    db.refresh(config)

    logger.info("admin=%s activated selection config %s", admin.id, config.id)
    log_operation(db, admin.id, "activate", "selection_config", f"Activate selection config: {_label(config)}",
                  target_type="selection_config", target_id=str(config.id))
    return config


@router.post("/{config_id}/end", response_model=SelectionConfigOut)
def end_config(config_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    config = _get_or_404(db, config_id)
    if config.status != "active":
        raise ConflictError("CONFIG_NOT_ACTIVE", "Only active configurations can be ended")

    config.status = "ended"
    db.commit()
    db.refresh(config)

    log_operation(db, admin.id, "end", "selection_config", f"End selection config: {_label(config)}",
                  target_type="selection_config", target_id=str(config.id))
    return config


@router.post("/{config_id}/copy", response_model=SelectionConfigOut)
def copy_config(
    config_id: int,
    body: SelectionConfigCopy,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    source = _get_or_404(db, config_id)

    semester = body.semester or source.semester
    academic_year = body.academic_year or source.academic_year
    round_number = body.round_number
    if round_number is None:
        last = db.query(func.max(CourseSelectionConfig.round_number)).filter(
            CourseSelectionConfig.semester == semester,
            CourseSelectionConfig.academic_year == academic_year,
        ).scalar()
        round_number = (last or 0) + 1

    start = body.start_time or source.start_time
    end = body.end_time or source.end_time
    if start > end:
        raise ValidationError("INVALID_WINDOW", "start_time must not be later than end_time")

    dup = db.query(CourseSelectionConfig.id).filter(
        CourseSelectionConfig.semester == semester,
        CourseSelectionConfig.academic_year == academic_year,
        CourseSelectionConfig.round_number == round_number,
    ).first()
    if dup:
        raise ConflictError("CONFIG_EXISTS", "Selection configuration for this round already exists")
    if _overlapping(db, semester, academic_year, start, end):
        raise ConflictError("CONFIG_TIME_CONFLICT", "Selection window overlaps another configuration")

    config = CourseSelectionConfig(
        semester=semester,
        academic_year=academic_year,
        round_number=round_number,
        round_name=source.round_name,
        selection_method=source.selection_method,
        start_time=start,
        end_time=end,
        max_credits=source.max_credits,
        max_courses=source.max_courses,
        allow_drop=source.allow_drop,
        allow_change=source.allow_change,
        description=source.description,
        status="draft",
        created_by=admin.id,
    )
    db.add(config)
    db.commit()
    db.refresh(config)

    logger.info("admin=%s copied selection config %s -> %s", admin.id, source.id, config.id)
    log_operation(db, admin.id, "copy", "selection_config", f"Copy selection config to: {_label(config)}",
                  target_type="selection_config", target_id=str(config.id))
    return config


@router.delete("/{config_id}")
def delete_config(config_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    config = _get_or_404(db, config_id)
    if config.status != "draft":
        raise ConflictError("CONFIG_NOT_DRAFT", "Only draft configurations can be deleted")

    label = _label(config)
    db.delete(config)
    db.commit()

    log_operation(db, admin.id, "delete", "selection_config", f"Delete selection config: {label}",
                  target_type="selection_config", target_id=str(config_id))
    return {"detail": "selection config deleted"}
