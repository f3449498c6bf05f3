# app/utils/conflict.py
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.course import Course
from app.models.course_selection import CourseSelection, HOLDING_STATUSES
from app.models.user import User


@dataclass(frozen=True)
class ConflictResult:
    conflict: bool
    detail: str = ""
    conflict_course_id: Optional[int] = None


def intervals_overlap(s1, e1, s2, e2) -> bool:
    """
    [s1, e1) 與 [s2, e2) 是否重疊
    10:00-11:00 與 11:00-12:00 相鄰，不算衝堂
    """
    return s1 < e2 and s2 < e1


def check_time_conflict(
    db: Session,
    user_id: int,
    course_id: int,
    exclude_course_id: Optional[int] = None,
) -> ConflictResult:
    target = db.query(Course).filter(Course.id == course_id).first()
    if target is None:
        return ConflictResult(conflict=True, detail="Course not found")

    # 沒排上課時間就不檢查
    if target.day_of_week is None or target.start_time is None or target.end_time is None:
        return ConflictResult(conflict=False)

    q = (
        db.query(Course)
        .join(CourseSelection, CourseSelection.course_id == Course.id)
        .filter(
            CourseSelection.user_id == user_id,
            CourseSelection.status.in_(HOLDING_STATUSES),
            Course.day_of_week == target.day_of_week,
            Course.id != course_id,
        )
    )
    if exclude_course_id is not None:
        q = q.filter(Course.id != exclude_course_id)

    for c in q.order_by(Course.start_time.asc(), Course.id.asc()).all():
        if c.start_time is None or c.end_time is None:
            continue
        if intervals_overlap(c.start_time, c.end_time, target.start_time, target.end_time):
            return ConflictResult(
                conflict=True,
                detail=f'Time conflict with course "{c.name}"',
                conflict_course_id=c.id,
            )

    return ConflictResult(conflict=False)


def check_credit_conflict(db: Session, user_id: int, course_id: int) -> ConflictResult:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return ConflictResult(conflict=True, detail="User not found")

    course = db.query(Course).filter(Course.id == course_id).first()
    if course is None:
        return ConflictResult(conflict=True, detail="Course not found")

    current = (
        db.query(func.coalesce(func.sum(Course.credits), 0))
        .join(CourseSelection, CourseSelection.course_id == Course.id)
        .filter(
            CourseSelection.user_id == user_id,
            CourseSelection.status.in_(HOLDING_STATUSES),
            Course.id != course_id,
        )
        .scalar()
    )
    current = int(current or 0)

    if current + course.credits > user.credit_limit:
        return ConflictResult(
            conflict=True,
            detail=(
                f"Credit limit exceeded: already selected {current} credits, "
                f"course has {course.credits} credits, limit is {user.credit_limit}"
            ),
        )
    return ConflictResult(conflict=False)
