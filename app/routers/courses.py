# app/routers/courses.py
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.course import Course
from app.models.teacher import Teacher
from app.schemas.course import CourseOut, CourseListOut, TeacherOut


router = APIRouter(prefix="/courses", tags=["Courses"])


def selection_window_status(course: Course, now: datetime) -> str:
    if course.selection_start_time and now < course.selection_start_time:
        return "not_started"
    if course.selection_end_time and now > course.selection_end_time:
        return "ended"
    if course.enrolled_count >= course.capacity:
        return "full"
    return "available"


def to_course_out(course: Course, teacher: Optional[Teacher], now: datetime) -> CourseOut:
    return CourseOut(
        id=course.id,
        course_code=course.course_code,
        name=course.name,
        credits=course.credits,
        capacity=course.capacity,
        enrolled_count=course.enrolled_count,
        remaining_slots=max(0, course.capacity - course.enrolled_count),
        day_of_week=course.day_of_week,
        start_time=course.start_time,
        end_time=course.end_time,
        venue=course.venue,
        teacher_name=teacher.name if teacher else None,
        teacher_title=teacher.title if teacher else None,
        selection_start_time=course.selection_start_time,
        selection_end_time=course.selection_end_time,
        selection_status=selection_window_status(course, now),
    )


@router.get("", response_model=CourseListOut)
def list_courses(
    db: Session = Depends(get_db),
    keyword: Optional[str] = Query(None, description="課程名稱關鍵字"),
    day_of_week: Optional[int] = Query(None, ge=1, le=7, description="上課星期 1~7"),
    available_only: bool = Query(False, description="只看還有名額的課"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
):
    q = (
        db.query(Course, Teacher)
        .outerjoin(Teacher, Teacher.id == Course.teacher_id)
        .filter(Course.status == "published")
    )

    if keyword:
        q = q.filter(Course.name.ilike(f"%{keyword.strip()}%"))

    if day_of_week is not None:
        q = q.filter(Course.day_of_week == day_of_week)

    if available_only:
        q = q.filter(Course.enrolled_count < Course.capacity)

    total = q.count()
    rows = (
        q.order_by(Course.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    now = datetime.now()
    items = [to_course_out(course, teacher, now) for course, teacher in rows]
    return CourseListOut(items=items, total=total, page=page, page_size=page_size)


# 老師列表，前端篩選用
@router.get("/teachers", response_model=list[TeacherOut])
def list_teachers(db: Session = Depends(get_db)):
    return db.query(Teacher).order_by(Teacher.name.asc()).all()


@router.get("/{course_id}", response_model=CourseOut)
def get_course(course_id: int, db: Session = Depends(get_db)):
    row = (
        db.query(Course, Teacher)
        .outerjoin(Teacher, Teacher.id == Course.teacher_id)
        .filter(Course.id == course_id, Course.status == "published")
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Course not found")
    course, teacher = row
    return to_course_out(course, teacher, datetime.now())
