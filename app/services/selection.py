# app/services/selection.py
"""
Course selection / drop state transitions.

All changes to ``Course.enrolled_count`` go through :func:`claim_seat` and
:func:`release_seat`, and only after :func:`lock_course` took the course row
lock in the same transaction. ``claim_seat`` is a conditional UPDATE, so the
capacity check stays race-free even on a backend that ignores ``FOR UPDATE``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.course import Course
from app.models.course_selection import (
    CourseSelection,
    PENDING,
    SELECTED,
    LOTTERY,
    WAITING,
    FAILED,
    DROPPED,
    REOPENABLE_STATUSES,
)
from app.models.selection_history import SelectionHistory
from app.services.audit import log_operation
from app.utils.conflict import check_time_conflict, check_credit_conflict
from app.utils.errors import ValidationError, ConflictError, NotFoundError, SelectionError, TransactionError
from app.utils.selection_period import is_selection_open

logger = logging.getLogger("app.selection")

# 已有紀錄時擋下重選的訊息
EXISTING_STATUS_MESSAGES = {
    PENDING: "Course already selected, waiting for processing",
    SELECTED: "Course already selected",
    LOTTERY: "Course is in the lottery queue",
    WAITING: "Course is on the waiting list",
}

RESULT_MESSAGES = {
    SELECTED: "Course selected",
    LOTTERY: "Course is full, added to the lottery queue",
    PENDING: "Selection request submitted",
}


@dataclass(frozen=True)
class SelectResult:
    course_id: int
    status: str
    message: str


@dataclass(frozen=True)
class DropResult:
    course_id: int
    previous_status: str
    promoted_user_id: Optional[int] = None


def _now() -> datetime:
    return datetime.now()


# ===== 低階操作：呼叫前必須已在交易中 =====

def lock_course(db: Session, course_id: int) -> Optional[Course]:
    """SELECT ... FOR UPDATE on the course row; concurrent writers for the same course queue here."""
    return (
        db.query(Course)
        .filter(Course.id == course_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def get_selection(db: Session, user_id: int, course_id: int) -> Optional[CourseSelection]:
    return (
        db.query(CourseSelection)
        .filter(CourseSelection.user_id == user_id, CourseSelection.course_id == course_id)
        .populate_existing()
        .first()
    )


def claim_seat(db: Session, course_id: int) -> bool:
    """enrolled_count + 1 only while below capacity. Returns whether a seat was taken."""
    result = db.execute(
        update(Course)
        .where(Course.id == course_id, Course.enrolled_count < Course.capacity)
        .values(enrolled_count=Course.enrolled_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_seat(db: Session, course_id: int) -> None:
    db.execute(
        update(Course)
        .where(Course.id == course_id, Course.enrolled_count > 0)
        .values(enrolled_count=Course.enrolled_count - 1)
        .execution_options(synchronize_session=False)
    )


def promote_next_waiting(db: Session, course_id: int, note: Optional[str] = None) -> Optional[CourseSelection]:
    """
    候補遞補：最早建立的 waiting 紀錄轉成 selected。
    有空位才遞補，遞補會佔一個名額（enrolled_count + 1）。
    """
    waiting = (
        db.query(CourseSelection)
        .filter(CourseSelection.course_id == course_id, CourseSelection.status == WAITING)
        .order_by(CourseSelection.created_at.asc(), CourseSelection.id.asc())
        .with_for_update()
        .first()
    )
    if waiting is None:
        return None
    if not claim_seat(db, course_id):
        return None

    now = _now()
    waiting.status = SELECTED
    waiting.selected_at = now
    waiting.result_time = now
    if note:
        waiting.admin_notes = note
    logger.info("Promoted waiting user=%s into course=%s", waiting.user_id, course_id)
    return waiting


def add_history(db: Session, user_id: int, course_id: int, action: str) -> None:
    db.add(SelectionHistory(
        user_id=user_id,
        course_id=course_id,
        action=action,
        action_time=_now(),
        semester=settings.CURRENT_SEMESTER,
        academic_year=settings.CURRENT_ACADEMIC_YEAR,
    ))


# ===== 學生選課 / 退選 =====

def _check_course_window(course: Course, now: datetime) -> None:
    if course.selection_start_time and now < course.selection_start_time:
        raise ConflictError("COURSE_SELECTION_NOT_STARTED", "Course selection has not started")
    if course.selection_end_time and now > course.selection_end_time:
        raise ConflictError("COURSE_SELECTION_ENDED", "Course selection has ended")


def _reject_live_record(record: Optional[CourseSelection]) -> None:
    if record is not None and record.status not in REOPENABLE_STATUSES:
        raise ConflictError(
            "ALREADY_SELECTED",
            EXISTING_STATUS_MESSAGES.get(record.status, "Invalid selection status"),
        )


def select_course(db: Session, user_id: int, course_id: Optional[int]) -> SelectResult:
    if not course_id:
        raise ValidationError("COURSE_ID_REQUIRED", "course_id is required")

    gate = is_selection_open(db)
    if not gate.open:
        raise ConflictError("SELECTION_CLOSED", gate.reason)

    course = db.query(Course).filter(Course.id == course_id, Course.status == "published").first()
    if course is None:
        raise NotFoundError("COURSE_NOT_FOUND", "Course not found or not published")
    _check_course_window(course, _now())

    _reject_live_record(get_selection(db, user_id, course_id))

    # 衝堂 / 學分只是提早擋；名額要在鎖裡面判斷
    time_check = check_time_conflict(db, user_id, course_id)
    if time_check.conflict:
        raise ConflictError("TIME_CONFLICT", time_check.detail)

    credit_check = check_credit_conflict(db, user_id, course_id)
    if credit_check.conflict:
        raise ConflictError("CREDIT_LIMIT_EXCEEDED", credit_check.detail)

    try:
        if lock_course(db, course_id) is None:
            raise NotFoundError("COURSE_NOT_FOUND", "Course not found")

        # 同一學生連點兩次：鎖住之後再看一次
        record = get_selection(db, user_id, course_id)
        _reject_live_record(record)

        now = _now()
        if record is None:
            record = CourseSelection(user_id=user_id, course_id=course_id, status=PENDING, selection_time=now)
            db.add(record)
        else:
            record.status = PENDING
            record.selection_time = now
            record.result_time = None
            record.selected_at = None
        db.flush()

        if claim_seat(db, course_id):
            record.status = SELECTED
            record.selected_at = now
            record.result_time = now
        else:
            record.status = LOTTERY

        final_status = record.status
        add_history(db, user_id, course_id, "select")
        db.commit()
    except SelectionError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Select transaction failed user=%s course=%s", user_id, course_id)
        raise TransactionError() from exc

    logger.info("user=%s course=%s -> %s", user_id, course_id, final_status)
    log_operation(
        db, user_id, "select", "course_selection",
        f"Select course {course_id}: {final_status}",
        target_type="course_selection", target_id=f"{user_id}_{course_id}",
    )
    return SelectResult(
        course_id=course_id,
        status=final_status,
        message=RESULT_MESSAGES.get(final_status, RESULT_MESSAGES[PENDING]),
    )


def drop_course(db: Session, user_id: int, course_id: Optional[int]) -> DropResult:
    if not course_id:
        raise ValidationError("COURSE_ID_REQUIRED", "course_id is required")

    def _check(record: Optional[CourseSelection]) -> None:
        if record is None:
            raise NotFoundError("SELECTION_NOT_FOUND", "Selection record not found")
        if record.status == DROPPED:
            raise ConflictError("ALREADY_DROPPED", "Course already dropped")
        if record.status == FAILED:
            raise ConflictError("SELECTION_FAILED", "Course selection failed, nothing to drop")

    _check(get_selection(db, user_id, course_id))

    try:
        lock_course(db, course_id)
        record = get_selection(db, user_id, course_id)
        _check(record)

        previous = record.status
        now = _now()
        record.status = DROPPED
        record.result_time = now
        record.selected_at = None

        if previous == SELECTED:
            release_seat(db, course_id)

        # 退選跟遞補在同一個交易裡
        promoted = promote_next_waiting(db, course_id)
        promoted_user_id = promoted.user_id if promoted is not None else None

        add_history(db, user_id, course_id, "drop")
        db.commit()
    except SelectionError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Drop transaction failed user=%s course=%s", user_id, course_id)
        raise TransactionError() from exc

    logger.info("user=%s dropped course=%s (was %s, promoted=%s)", user_id, course_id, previous, promoted_user_id)
    log_operation(
        db, user_id, "drop", "course_selection",
        f"Drop course {course_id} (was {previous})",
        target_type="course_selection", target_id=f"{user_id}_{course_id}",
    )
    return DropResult(course_id=course_id, previous_status=previous, promoted_user_id=promoted_user_id)
