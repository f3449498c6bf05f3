# app/routers/selections.py
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.course import Course
from app.models.course_selection import CourseSelection
from app.models.favorite import CourseFavorite
from app.models.selection_history import SelectionHistory
from app.models.teacher import Teacher
from app.schemas.selection import (
    SelectionIn,
    SelectionResultOut,
    PeriodOut,
    ConflictCheckOut,
    MySelectionOut,
    MySelectionListOut,
    HistoryOut,
    SelectionStatus,
)
from app.schemas.course import FavoriteCourseOut
from app.routers.courses import to_course_out
from app.services.selection import select_course, drop_course
from app.utils.auth import get_current_user
from app.utils.conflict import check_time_conflict, check_credit_conflict
from app.utils.errors import NotFoundError, ConflictError, ValidationError
from app.utils.selection_period import is_selection_open


router = APIRouter(prefix="/selections", tags=["Course Selection"])


@router.get("/period", response_model=PeriodOut)
def get_selection_period(db: Session = Depends(get_db)):
    gate = is_selection_open(db)
    config = gate.config
    return PeriodOut(
        open=gate.open,
        reason=gate.reason,
        config_id=config.id if config else None,
        start_time=config.start_time if config else None,
        end_time=config.end_time if config else None,
    )


# 選課
@router.post("")
def select(body: SelectionIn, db: Session = Depends(get_db), user=Depends(get_current_user)):
    result = select_course(db, user.id, body.course_id)
    return {
        "success": True,
        "message": result.message,
        "data": SelectionResultOut(course_id=result.course_id, status=result.status),
    }


# 退選
@router.post("/drop")
def drop(body: SelectionIn, db: Session = Depends(get_db), user=Depends(get_current_user)):
    drop_course(db, user.id, body.course_id)
    return {"success": True, "message": "Course dropped"}


# 只檢查，不寫入
@router.get("/check/{course_id}", response_model=ConflictCheckOut)
def check_conflicts(
    course_id: int,
    exclude_course_id: Optional[int] = Query(None, description="換課時要排除的原課程"),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    exists = db.query(Course.id).filter(Course.id == course_id, Course.status == "published").first()
    if not exists:
        raise NotFoundError("COURSE_NOT_FOUND", "Course not found or not published")

    t = check_time_conflict(db, user.id, course_id, exclude_course_id)
    c = check_credit_conflict(db, user.id, course_id)
    return ConflictCheckOut(
        course_id=course_id,
        time_conflict=t.conflict,
        time_detail=t.detail,
        credit_conflict=c.conflict,
        credit_detail=c.detail,
    )


@router.get("/me", response_model=MySelectionListOut)
def my_selections(
    status: Optional[SelectionStatus] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    q = (
        db.query(CourseSelection, Course, Teacher.name.label("teacher_name"))
        .join(Course, Course.id == CourseSelection.course_id)
        .outerjoin(Teacher, Teacher.id == Course.teacher_id)
        .filter(CourseSelection.user_id == user.id)
    )
    if status:
        q = q.filter(CourseSelection.status == status)

    rows = q.order_by(CourseSelection.selection_time.desc(), CourseSelection.id.desc()).all()

    selections = [
        MySelectionOut(
            id=sel.id,
            course_id=course.id,
            course_code=course.course_code,
            course_name=course.name,
            credits=course.credits,
            status=sel.status,
            day_of_week=course.day_of_week,
            start_time=course.start_time,
            end_time=course.end_time,
            venue=course.venue,
            teacher_name=teacher_name,
            selection_time=sel.selection_time,
            result_time=sel.result_time,
        )
        for sel, course, teacher_name in rows
    ]

    # 各狀態數量
    counts = (
        db.query(CourseSelection.status, func.count(CourseSelection.id))
        .filter(CourseSelection.user_id == user.id)
        .group_by(CourseSelection.status)
        .all()
    )

    return MySelectionListOut(selections=selections, status_counts={s: n for s, n in counts})


@router.get("/history", response_model=list[HistoryOut])
def my_history(
    semester: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    q = (
        db.query(SelectionHistory, Course)
        .join(Course, Course.id == SelectionHistory.course_id)
        .filter(SelectionHistory.user_id == user.id)
    )
    if semester:
        q = q.filter(SelectionHistory.semester == semester)
    if academic_year:
        q = q.filter(SelectionHistory.academic_year == academic_year)

    rows = q.order_by(SelectionHistory.action_time.desc(), SelectionHistory.id.desc()).all()
    return [
        HistoryOut(
            action=h.action,
            action_time=h.action_time,
            semester=h.semester,
            academic_year=h.academic_year,
            course_id=c.id,
            course_code=c.course_code,
            course_name=c.name,
            credits=c.credits,
        )
        for h, c in rows
    ]


# ===== 收藏 =====

@router.post("/favorites")
def add_favorite(body: SelectionIn, db: Session = Depends(get_db), user=Depends(get_current_user)):
    if not body.course_id:
        raise ValidationError("COURSE_ID_REQUIRED", "course_id is required")

    course = db.query(Course.id).filter(Course.id == body.course_id, Course.status == "published").first()
    if not course:
        raise NotFoundError("COURSE_NOT_FOUND", "Course not found or not published")

    exists = db.query(CourseFavorite.id).filter(
        CourseFavorite.user_id == user.id,
        CourseFavorite.course_id == body.course_id,
    ).first()
    if exists:
        raise ConflictError("ALREADY_FAVORITED", "Course already in favorites")

    db.add(CourseFavorite(user_id=user.id, course_id=body.course_id))
    db.commit()
    return {"success": True, "message": "Added to favorites"}


@router.delete("/favorites/{course_id}")
def remove_favorite(course_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    deleted = (
        db.query(CourseFavorite)
        .filter(CourseFavorite.user_id == user.id, CourseFavorite.course_id == course_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFoundError("FAVORITE_NOT_FOUND", "Favorite not found")
    db.commit()
    return {"success": True, "message": "Removed from favorites"}


@router.get("/favorites", response_model=list[FavoriteCourseOut])
def list_favorites(db: Session = Depends(get_db), user=Depends(get_current_user)):
    rows = (
        db.query(CourseFavorite, Course, Teacher)
        .join(Course, Course.id == CourseFavorite.course_id)
        .outerjoin(Teacher, Teacher.id == Course.teacher_id)
        .filter(CourseFavorite.user_id == user.id, Course.status == "published")
        .order_by(CourseFavorite.created_at.desc(), CourseFavorite.id.desc())
        .all()
    )

    now = datetime.now()
    return [
        FavoriteCourseOut(**to_course_out(course, teacher, now).model_dump(), favorite_time=fav.created_at)
        for fav, course, teacher in rows
    ]
