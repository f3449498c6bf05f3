# app/services/emergency.py
"""
Administrator overrides on selection records.

These bypass the selection-period gate and the conflict checkers. Forced drops
and waiting-list removals hard-delete the row, unlike a student drop which keeps
it as ``dropped``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.course import Course
from app.models.course_selection import CourseSelection, SELECTED, WAITING, FAILED, SELECTION_STATUSES
from app.models.selection_config import CourseSelectionConfig
from app.models.user import User
from app.services.audit import log_operation
from app.services.selection import (
    lock_course,
    get_selection,
    claim_seat,
    release_seat,
    promote_next_waiting,
)
from app.utils.errors import ValidationError, ConflictError, NotFoundError, SelectionError, TransactionError

logger = logging.getLogger("app.emergency")

FORCE_SELECT = "force_select"
FORCE_DROP = "force_drop"
MOVE_TO_WAITING = "move_to_waiting"
REMOVE_FROM_WAITING = "remove_from_waiting"

CLEANUP_TYPES = ("orphaned_records", "expired_waiting", "invalid_status")


@dataclass(frozen=True)
class AdjustResult:
    action: str
    message: str


@dataclass
class OperationOutcome:
    user_id: Optional[int]
    course_id: Optional[int]
    action: Optional[str]
    success: bool
    message: str


@dataclass
class BatchResult:
    total: int
    success_count: int = 0
    failure_count: int = 0
    results: list[OperationOutcome] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now()


# ===== 四種調整 =====

def force_select(db: Session, user_id: int, course_id: int, reason: str) -> str:
    if lock_course(db, course_id) is None:
        raise NotFoundError("COURSE_NOT_FOUND", "Course not found")

    record = get_selection(db, user_id, course_id)
    if record is not None and record.status == SELECTED:
        raise ConflictError("ALREADY_SELECTED", "User has already selected this course")

    # 管理員可以略過衝堂/學分，但不能超過容量；要先把人移去候補
    if not claim_seat(db, course_id):
        raise ConflictError("COURSE_FULL", "Course is full, move a student to the waiting list first")

    now = _now()
    note = f"Admin force select: {reason}"
    if record is None:
        db.add(CourseSelection(
            user_id=user_id,
            course_id=course_id,
            status=SELECTED,
            selection_time=now,
            selected_at=now,
            result_time=now,
            admin_notes=note,
        ))
    else:
        record.status = SELECTED
        record.selected_at = now
        record.result_time = now
        record.admin_notes = note
    db.flush()
    return "Force select succeeded"


def force_drop(db: Session, user_id: int, course_id: int, reason: str) -> str:
    lock_course(db, course_id)

    record = get_selection(db, user_id, course_id)
    if record is None or record.status != SELECTED:
        raise NotFoundError("SELECTION_NOT_FOUND", "User has not selected this course")

    db.delete(record)
    db.flush()
    release_seat(db, course_id)

    promoted = promote_next_waiting(db, course_id, note=f"Promoted from waiting list - reason: {reason}")
    db.flush()
    if promoted is not None:
        return f"Force drop succeeded, user {promoted.user_id} promoted from waiting list"
    return "Force drop succeeded"


def move_to_waiting(db: Session, user_id: int, course_id: int, reason: str) -> str:
    lock_course(db, course_id)

    record = get_selection(db, user_id, course_id)
    if record is None or record.status != SELECTED:
        raise NotFoundError("SELECTION_NOT_FOUND", "User has not selected this course")

    record.status = WAITING
    record.selected_at = None
    record.admin_notes = f"Admin moved to waiting list: {reason}"
    release_seat(db, course_id)
    db.flush()
    return "Moved to waiting list"


def remove_from_waiting(db: Session, user_id: int, course_id: int, reason: str) -> str:
    lock_course(db, course_id)

    record = get_selection(db, user_id, course_id)
    if record is None or record.status != WAITING:
        raise NotFoundError("WAITING_NOT_FOUND", "User is not on the waiting list of this course")

    db.delete(record)
    db.flush()
    return "Removed from waiting list"


ACTIONS: dict[str, Callable[[Session, int, int, str], str]] = {
    FORCE_SELECT: force_select,
    FORCE_DROP: force_drop,
    MOVE_TO_WAITING: move_to_waiting,
    REMOVE_FROM_WAITING: remove_from_waiting,
}


def _run_action(db: Session, action: Optional[str], user_id: int, course_id: int, reason: str) -> str:
    handler = ACTIONS.get(action or "")
    if handler is None:
        raise ValidationError("INVALID_ACTION", "Invalid action type")
    return handler(db, user_id, course_id, reason)


def _require_targets(db: Session, user_id: int, course_id: int) -> tuple[User, Course]:
    # 先確認兩邊都存在，不要等 flush 撞 FK 把整個交易弄壞
    user = db.query(User).filter(User.id == user_id).first()
    course = db.query(Course).filter(Course.id == course_id).first()
    if user is None or course is None:
        raise NotFoundError("NOT_FOUND", "User or course not found")
    return user, course


# ===== 單筆調整 =====

def adjust_selection(
    db: Session,
    admin_id: int,
    user_id: Optional[int],
    course_id: Optional[int],
    action: Optional[str],
    reason: Optional[str],
) -> AdjustResult:
    if not user_id or not course_id or not action or not reason:
        raise ValidationError("MISSING_FIELDS", "user_id, course_id, action and reason are required")
    if action not in ACTIONS:
        raise ValidationError("INVALID_ACTION", "Invalid action type")

    user, course = _require_targets(db, user_id, course_id)

    description = f"Manual adjust: {user.student_id or user.username} - {course.name} ({action}) - reason: {reason}"
    target_id = f"{user_id}_{course_id}"

    try:
        message = _run_action(db, action, user_id, course_id, reason)
        db.commit()
    except SelectionError as exc:
        db.rollback()
        log_operation(
            db, admin_id, "manual_adjust", "emergency_handling", f"{description} - {exc.message}",
            target_type="course_selection", target_id=target_id, result="failure",
        )
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Adjust transaction failed: %s", description)
        raise TransactionError() from exc

    logger.info("admin=%s %s", admin_id, description)
    log_operation(
        db, admin_id, "manual_adjust", "emergency_handling", description,
        target_type="course_selection", target_id=target_id,
    )
    return AdjustResult(action=action, message=message)


# ===== 批次調整 =====

def batch_process(db: Session, admin_id: int, operations: list[dict], reason: Optional[str]) -> BatchResult:
    """
    逐筆執行，單筆失敗只收集結果不中斷；整批只 commit 一次。
    每筆先檢查 user / course 存在，不存在的那筆記成失敗。
    失敗那一筆在出錯前已做的修改不會個別 rollback；DB 錯誤才會整批 rollback。
    """
    if not operations:
        raise ValidationError("EMPTY_OPERATIONS", "Operation list must not be empty")
    if not reason:
        raise ValidationError("REASON_REQUIRED", "Batch reason is required")

    batch = BatchResult(total=len(operations))

    try:
        for op in operations:
            user_id = op.get("user_id")
            course_id = op.get("course_id")
            action = op.get("action")
            try:
                if not user_id or not course_id:
                    raise ValidationError("MISSING_FIELDS", "user_id and course_id are required")
                _require_targets(db, user_id, course_id)
                message = _run_action(db, action, user_id, course_id, reason)
                batch.results.append(OperationOutcome(user_id, course_id, action, True, message))
                batch.success_count += 1
            except SelectionError as exc:
                batch.results.append(OperationOutcome(user_id, course_id, action, False, exc.message))
                batch.failure_count += 1

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Batch transaction failed (%d operations)", len(operations))
        raise TransactionError() from exc

    logger.info("admin=%s batch done success=%d failure=%d", admin_id, batch.success_count, batch.failure_count)
    log_operation(
        db, admin_id, "batch_adjust", "emergency_handling",
        f"Batch adjust: {batch.success_count} succeeded, {batch.failure_count} failed - reason: {reason}",
    )
    return batch


# ===== 緊急停止 / 資料清理 =====

def stop_selection(db: Session, admin_id: int, reason: Optional[str]) -> int:
    """把所有 active 的選課設定改成 cancelled，回傳停掉幾筆。"""
    if not reason:
        raise ValidationError("REASON_REQUIRED", "Stop reason is required")

    active = db.query(CourseSelectionConfig).filter(CourseSelectionConfig.status == "active").all()
    if not active:
        raise ConflictError("NO_ACTIVE_CONFIG", "No active selection configuration")

    try:
        for config in active:
            config.status = "cancelled"
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Emergency stop failed")
        raise TransactionError() from exc

    logger.warning("admin=%s stopped course selection: %s", admin_id, reason)
    log_operation(db, admin_id, "emergency_stop", "emergency_handling", f"Emergency stop selection - reason: {reason}")
    return len(active)


def cleanup(db: Session, admin_id: int, cleanup_type: Optional[str], confirm: bool) -> int:
    if not confirm:
        raise ValidationError("CONFIRM_REQUIRED", "Please confirm the cleanup operation")
    if cleanup_type not in CLEANUP_TYPES:
        raise ValidationError("INVALID_CLEANUP_TYPE", "Invalid cleanup type")

    try:
        if cleanup_type == "orphaned_records":
            user_ids = select(User.id)
            course_ids = select(Course.id)
            affected = (
                db.query(CourseSelection)
                .filter(
                    ~CourseSelection.user_id.in_(user_ids)
                    | ~CourseSelection.course_id.in_(course_ids)
                )
                .delete(synchronize_session=False)
            )
        elif cleanup_type == "expired_waiting":
            cutoff = _now() - timedelta(days=settings.EXPIRED_WAITING_DAYS)
            affected = (
                db.query(CourseSelection)
                .filter(CourseSelection.status == WAITING, CourseSelection.created_at < cutoff)
                .delete(synchronize_session=False)
            )
        else:
            affected = (
                db.query(CourseSelection)
                .filter(CourseSelection.status.notin_(SELECTION_STATUSES))
                .update({CourseSelection.status: FAILED}, synchronize_session=False)
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Cleanup %s failed", cleanup_type)
        raise TransactionError() from exc

    logger.info("admin=%s cleanup %s affected=%d", admin_id, cleanup_type, affected)
    log_operation(db, admin_id, "cleanup", "data_maintenance", f"Data cleanup: {cleanup_type} - {affected} rows")
    return affected
