from datetime import time

from app.models.course_selection import CourseSelection
from app.utils.conflict import check_time_conflict, check_credit_conflict, intervals_overlap


def _hold(db, user, course, status="selected"):
    db.add(CourseSelection(user_id=user.id, course_id=course.id, status=status))
    db.commit()


def test_intervals_overlap_is_half_open():
    assert intervals_overlap(time(10), time(11), time(10, 30), time(11, 30))
    assert not intervals_overlap(time(10), time(11), time(11), time(12))
    assert not intervals_overlap(time(11), time(12), time(10), time(11))
    assert intervals_overlap(time(9), time(12), time(10), time(11))


def test_overlapping_course_same_day_names_the_conflict(db, make_user, make_course):
    user = make_user()
    a = make_course(name="Badminton", day_of_week=1, start_time=time(10), end_time=time(11))
    b = make_course(name="Tennis", day_of_week=1, start_time=time(10, 30), end_time=time(11, 30))
    _hold(db, user, a)

    result = check_time_conflict(db, user.id, b.id)

    assert result.conflict
    assert "Badminton" in result.detail
    assert result.conflict_course_id == a.id


def test_adjacent_course_is_not_a_conflict(db, make_user, make_course):
    user = make_user()
    a = make_course(day_of_week=1, start_time=time(10), end_time=time(11))
    c = make_course(day_of_week=1, start_time=time(11), end_time=time(12))
    _hold(db, user, a)

    assert not check_time_conflict(db, user.id, c.id).conflict


def test_other_day_and_dropped_records_are_ignored(db, make_user, make_course):
    user = make_user()
    monday = make_course(day_of_week=1, start_time=time(10), end_time=time(11))
    dropped = make_course(day_of_week=2, start_time=time(10), end_time=time(11))
    target = make_course(day_of_week=2, start_time=time(10), end_time=time(11))
    _hold(db, user, monday)
    _hold(db, user, dropped, status="dropped")

    assert not check_time_conflict(db, user.id, target.id).conflict


def test_pending_record_counts_as_holding(db, make_user, make_course):
    user = make_user()
    a = make_course(day_of_week=3, start_time=time(8), end_time=time(10))
    b = make_course(day_of_week=3, start_time=time(9), end_time=time(11))
    _hold(db, user, a, status="pending")

    assert check_time_conflict(db, user.id, b.id).conflict


def test_exclude_course_skips_the_course_being_swapped(db, make_user, make_course):
    user = make_user()
    a = make_course(day_of_week=1, start_time=time(10), end_time=time(11))
    b = make_course(day_of_week=1, start_time=time(10), end_time=time(11))
    _hold(db, user, a)

    assert check_time_conflict(db, user.id, b.id).conflict
    assert not check_time_conflict(db, user.id, b.id, exclude_course_id=a.id).conflict


def test_missing_course_reports_conflict(db, make_user):
    user = make_user()
    result = check_time_conflict(db, user.id, 999)
    assert result.conflict
    assert result.detail == "Course not found"


def test_credit_limit_boundary(db, make_user, make_course):
    user = make_user(credit_limit=4)
    held = make_course(credits=2)
    two = make_course(credits=2)
    three = make_course(credits=3)
    _hold(db, user, held)

    assert not check_credit_conflict(db, user.id, two.id).conflict

    over = check_credit_conflict(db, user.id, three.id)
    assert over.conflict
    assert "2 credits" in over.detail
    assert "3 credits" in over.detail
    assert "limit is 4" in over.detail


def test_credit_check_ignores_lottery_and_waiting(db, make_user, make_course):
    user = make_user(credit_limit=2)
    queued = make_course(credits=2)
    waiting = make_course(credits=2)
    target = make_course(credits=2)
    _hold(db, user, queued, status="lottery")
    _hold(db, user, waiting, status="waiting")

    assert not check_credit_conflict(db, user.id, target.id).conflict


def test_credit_check_unknown_user(db, make_course):
    course = make_course()
    result = check_credit_conflict(db, 12345, course.id)
    assert result.conflict
    assert result.detail == "User not found"
