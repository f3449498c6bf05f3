from concurrent.futures import ThreadPoolExecutor

from app.models.course import Course
from app.models.course_selection import CourseSelection
from app.services.selection import select_course, drop_course


def test_concurrent_selects_never_overfill(session_factory, open_period, make_user, make_course):
    capacity = 5
    course_id = make_course(capacity=capacity).id
    student_ids = [make_user().id for _ in range(20)]

    def attempt(user_id):
        with session_factory() as session:
            return select_course(session, user_id, course_id).status

    with ThreadPoolExecutor(max_workers=8) as pool:
        statuses = list(pool.map(attempt, student_ids))

    assert statuses.count("selected") == capacity
    assert statuses.count("lottery") == len(student_ids) - capacity

    with session_factory() as session:
        assert session.get(Course, course_id).enrolled_count == capacity
        assert session.query(CourseSelection).filter_by(course_id=course_id, status="selected").count() == capacity
        assert session.query(CourseSelection).filter_by(course_id=course_id).count() == len(student_ids)


def test_concurrent_selects_on_different_courses(session_factory, open_period, make_user, make_course):
    courses = [make_course(capacity=2).id for _ in range(3)]
    jobs = [(make_user().id, cid) for cid in courses for _ in range(4)]

    def attempt(job):
        user_id, course_id = job
        with session_factory() as session:
            return course_id, select_course(session, user_id, course_id).status

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(attempt, jobs))

    for cid in courses:
        statuses = [s for c, s in results if c == cid]
        assert statuses.count("selected") == 2
        assert statuses.count("lottery") == 2

    with session_factory() as session:
        for cid in courses:
            assert session.get(Course, cid).enrolled_count == 2


def test_concurrent_drops_and_selects_keep_capacity(session_factory, open_period, make_user, make_course):
    course_id = make_course(capacity=3).id
    holders = [make_user().id for _ in range(3)]
    for uid in holders:
        with session_factory() as session:
            select_course(session, uid, course_id)
    newcomers = [make_user().id for _ in range(6)]

    def drop(user_id):
        with session_factory() as session:
            drop_course(session, user_id, course_id)
            return "dropped"

    def select(user_id):
        with session_factory() as session:
            return select_course(session, user_id, course_id).status

    with ThreadPoolExecutor(max_workers=6) as pool:
        futures = [pool.submit(drop, uid) for uid in holders]
        futures += [pool.submit(select, uid) for uid in newcomers]
        [f.result() for f in futures]

    with session_factory() as session:
        selected = session.query(CourseSelection).filter_by(course_id=course_id, status="selected").count()
        course = session.get(Course, course_id)
        assert selected <= course.capacity
        assert course.enrolled_count == selected
