# app/utils/selection_period.py
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.selection_config import CourseSelectionConfig


@dataclass(frozen=True)
class GateResult:
    open: bool
    reason: str
    config: Optional[CourseSelectionConfig] = None


def current_config(db: Session, now: Optional[datetime] = None) -> Optional[CourseSelectionConfig]:
    """目前 active 且時間內的選課設定（同時只應有一筆，取最新建立的）"""
    now = now or datetime.now()
    return (
        db.query(CourseSelectionConfig)
        .filter(
            CourseSelectionConfig.status == "active",
            CourseSelectionConfig.start_time <= now,
            CourseSelectionConfig.end_time >= now,
        )
        .order_by(CourseSelectionConfig.created_at.desc(), CourseSelectionConfig.id.desc())
        .first()
    )


def is_selection_open(db: Session, now: Optional[datetime] = None) -> GateResult:
    # 每次選課都要重查，管理員隨時可能關閉選課
    config = current_config(db, now)
    if config is None:
        return GateResult(open=False, reason="Course selection is not open")
    return GateResult(open=True, reason=config.description or "Course selection period", config=config)
