from datetime import datetime, time, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.models.course import Course
from app.models.course_selection import CourseSelection
from app.models.operation_log import AdminOperationLog
from app.models.selection_history import SelectionHistory
from app.services import selection
from app.services.selection import select_course, drop_course
from app.utils.errors import ConflictError, NotFoundError, ValidationError, TransactionError


def _enrolled(db, course_id):
    db.expire_all()
    return db.get(Course, course_id).enrolled_count


def _record(db, user_id, course_id):
    return (
        db.query(CourseSelection)
        .filter(CourseSelection.user_id == user_id, CourseSelection.course_id == course_id)
        .one()
    )


def _waiting(db, user, course, created_at):
    row = CourseSelection(user_id=user.id, course_id=course.id, status="waiting", created_at=created_at)
    db.add(row)
    db.commit()
    return row


def test_select_takes_a_seat(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course(capacity=2)

    result = select_course(db, user.id, course.id)

    assert result.status == "selected"
    assert result.message == "Course selected"
    assert _enrolled(db, course.id) == 1
    record = _record(db, user.id, course.id)
    assert record.result_time is not None
    assert record.selected_at is not None


def test_full_course_goes_to_lottery_without_increment(db, open_period, make_user, make_course):
    course = make_course(capacity=1)
    first, second = make_user(), make_user()

    assert select_course(db, first.id, course.id).status == "selected"
    result = select_course(db, second.id, course.id)

    assert result.status == "lottery"
    assert result.message == "Course is full, added to the lottery queue"
    assert _enrolled(db, course.id) == 1
    assert _record(db, second.id, course.id).result_time is None


def test_missing_course_id_is_validation_error(db, make_user):
    with pytest.raises(ValidationError):
        select_course(db, make_user().id, None)


def test_closed_period_rejects(db, make_user, make_course):
    with pytest.raises(ConflictError) as exc:
        select_course(db, make_user().id, make_course().id)
    assert exc.value.code == "SELECTION_CLOSED"


def test_unpublished_course_not_found(db, open_period, make_user, make_course):
    course = make_course(status="draft")
    with pytest.raises(NotFoundError):
        select_course(db, make_user().id, course.id)


def test_course_level_window(db, open_period, make_user, make_course):
    now = datetime.now()
    early = make_course(selection_start_time=now + timedelta(hours=1))
    late = make_course(selection_end_time=now - timedelta(hours=1))
    user = make_user()

    with pytest.raises(ConflictError) as exc:
        select_course(db, user.id, early.id)
    assert exc.value.code == "COURSE_SELECTION_NOT_STARTED"

    with pytest.raises(ConflictError) as exc:
        select_course(db, user.id, late.id)
    assert exc.value.code == "COURSE_SELECTION_ENDED"


@pytest.mark.parametrize(
    "status, message",
    [
        ("selected", "Course already selected"),
        ("pending", "Course already selected, waiting for processing"),
        ("lottery", "Course is in the lottery queue"),
        ("waiting", "Course is on the waiting list"),
    ],
)
def test_live_record_blocks_reselection(db, open_period, make_user, make_course, status, message):
    user = make_user()
    course = make_course()
    db.add(CourseSelection(user_id=user.id, course_id=course.id, status=status))
    db.commit()

    with pytest.raises(ConflictError) as exc:
        select_course(db, user.id, course.id)

    assert exc.value.message == message
    assert _enrolled(db, course.id) == 0


def test_reselect_after_drop_reuses_row(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course()

    select_course(db, user.id, course.id)
    drop_course(db, user.id, course.id)
    result = select_course(db, user.id, course.id)

    assert result.status == "selected"
    rows = db.query(CourseSelection).filter_by(user_id=user.id, course_id=course.id).all()
    assert len(rows) == 1
    assert _enrolled(db, course.id) == 1


def test_reselect_after_failed_is_accepted(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course()
    db.add(CourseSelection(user_id=user.id, course_id=course.id, status="failed"))
    db.commit()

    assert select_course(db, user.id, course.id).status == "selected"
    assert db.query(CourseSelection).filter_by(user_id=user.id).count() == 1


def test_time_conflict_rejected_but_adjacent_accepted(db, open_period, make_user, make_course):
    user = make_user()
    a = make_course(name="Swimming", day_of_week=1, start_time=time(10), end_time=time(11))
    b = make_course(day_of_week=1, start_time=time(10, 30), end_time=time(11, 30))
    c = make_course(day_of_week=1, start_time=time(11), end_time=time(12))

    select_course(db, user.id, a.id)

    with pytest.raises(ConflictError) as exc:
        select_course(db, user.id, b.id)
    assert exc.value.code == "TIME_CONFLICT"
    assert "Swimming" in exc.value.message
    assert db.query(CourseSelection).filter_by(user_id=user.id, course_id=b.id).count() == 0

    assert select_course(db, user.id, c.id).status == "selected"


def test_credit_limit_boundary(db, open_period, make_user, make_course):
    user = make_user(credit_limit=4)
    held = make_course(credits=2)
    two = make_course(credits=2)
    three = make_course(credits=3)
    select_course(db, user.id, held.id)

    with pytest.raises(ConflictError) as exc:
        select_course(db, user.id, three.id)
    assert exc.value.code == "CREDIT_LIMIT_EXCEEDED"

    assert select_course(db, user.id, two.id).status == "selected"


def test_drop_twice_decrements_once(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course()
    select_course(db, user.id, course.id)

    result = drop_course(db, user.id, course.id)
    assert result.previous_status == "selected"
    assert _enrolled(db, course.id) == 0

    with pytest.raises(ConflictError) as exc:
        drop_course(db, user.id, course.id)
    assert exc.value.code == "ALREADY_DROPPED"
    assert _enrolled(db, course.id) == 0
    assert _record(db, user.id, course.id).status == "dropped"


def test_drop_without_record_or_failed(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course()

    with pytest.raises(NotFoundError):
        drop_course(db, user.id, course.id)

    db.add(CourseSelection(user_id=user.id, course_id=course.id, status="failed"))
    db.commit()
    with pytest.raises(ConflictError) as exc:
        drop_course(db, user.id, course.id)
    assert exc.value.code == "SELECTION_FAILED"


def test_drop_lottery_record_keeps_count(db, open_period, make_user, make_course):
    course = make_course(capacity=1)
    holder, queued = make_user(), make_user()
    select_course(db, holder.id, course.id)
    select_course(db, queued.id, course.id)

    drop_course(db, queued.id, course.id)

    assert _enrolled(db, course.id) == 1
    assert _record(db, holder.id, course.id).status == "selected"


def test_drop_promotes_oldest_waiting(db, open_period, make_user, make_course):
    course = make_course(capacity=1)
    holder, older, newer = make_user(), make_user(), make_user()
    select_course(db, holder.id, course.id)
    base = datetime.now() - timedelta(days=1)
    _waiting(db, newer, course, base + timedelta(minutes=5))
    _waiting(db, older, course, base)

    result = drop_course(db, holder.id, course.id)

    assert result.promoted_user_id == older.id
    assert _record(db, older.id, course.id).status == "selected"
    assert _record(db, older.id, course.id).result_time is not None
    assert _record(db, newer.id, course.id).status == "waiting"


def test_promotion_keeps_counter_equal_to_selected_rows(db, open_period, make_user, make_course):
    # 遞補會重新佔位，enrolled_count 一直等於 selected 筆數
    course = make_course(capacity=2)
    a, b = make_user(), make_user()
    select_course(db, a.id, course.id)
    select_course(db, b.id, course.id)
    base = datetime.now() - timedelta(days=1)
    waiters = [make_user() for _ in range(3)]
    for i, w in enumerate(waiters):
        _waiting(db, w, course, base + timedelta(minutes=i))

    drop_course(db, a.id, course.id)
    drop_course(db, waiters[0].id, course.id)
    drop_course(db, b.id, course.id)

    selected = db.query(CourseSelection).filter_by(course_id=course.id, status="selected").count()
    assert selected == 2
    assert _enrolled(db, course.id) == selected


def test_select_and_drop_append_history(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course()
    select_course(db, user.id, course.id)
    drop_course(db, user.id, course.id)

    actions = [h.action for h in db.query(SelectionHistory).order_by(SelectionHistory.id).all()]
    assert actions == ["select", "drop"]
    assert db.query(SelectionHistory).first().semester == "2026春"


def test_select_writes_audit_entry(db, open_period, make_user, make_course):
    user = make_user()
    course = make_course()
    select_course(db, user.id, course.id)

    entry = db.query(AdminOperationLog).filter_by(operation_type="select").one()
    assert entry.actor_id == user.id
    assert entry.target_id == f"{user.id}_{course.id}"


def test_failure_inside_transaction_rolls_back_everything(db, open_period, make_user, make_course, monkeypatch):
    user = make_user()
    course = make_course()

    def boom(*args, **kwargs):
        raise OperationalError("INSERT INTO selection_history", {}, Exception("connection lost"))

    monkeypatch.setattr(selection, "add_history", boom)

    with pytest.raises(TransactionError):
        select_course(db, user.id, course.id)

    assert _enrolled(db, course.id) == 0
    assert db.query(CourseSelection).filter_by(user_id=user.id).count() == 0


def test_audit_failure_does_not_break_selection(db, open_period, make_user, make_course, monkeypatch):
    from app.services import audit

    user = make_user()
    course = make_course()

    def broken(**kwargs):
        raise RuntimeError("audit store down")

    monkeypatch.setattr(audit, "AdminOperationLog", broken)

    assert select_course(db, user.id, course.id).status == "selected"
    assert _enrolled(db, course.id) == 1
    assert db.query(AdminOperationLog).count() == 0
