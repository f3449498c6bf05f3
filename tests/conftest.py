import itertools
import os
import tempfile
from datetime import datetime, timedelta
from types import SimpleNamespace

# app.database 建 engine 時就會讀設定，import app 之前先指定
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "pe-selection-test-logs"))

import pytest
from fastapi.testclient import TestClient

from app.database import Base, get_db, make_engine, make_session_factory
from app.main import app
from app.models.course import Course
from app.models.selection_config import CourseSelectionConfig
from app.models.user import User
from app.utils.auth import get_current_user


@pytest.fixture()
def engine(tmp_path):
    # 檔案型 sqlite，多執行緒測試才有真正的多條連線
    engine = make_engine(f"sqlite:///{tmp_path / 'test.sqlite'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def make_user(db):
    counter = itertools.count(1)

    def _make(username=None, *, role="student", credit_limit=4, **kw):
        n = next(counter)
        student_id = kw.pop("student_id", f"S{n:05d}" if role == "student" else None)
        user = User(
            username=username or f"student{n}",
            password_hash="x",
            role=role,
            student_id=student_id,
            credit_limit=credit_limit,
            **kw,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_course(db):
    counter = itertools.count(1)

    def _make(**kw):
        n = next(counter)
        values = dict(
            course_code=f"PE{n:03d}",
            name=f"Course {n}",
            credits=1,
            capacity=30,
            enrolled_count=0,
            status="published",
        )
        values.update(kw)
        course = Course(**values)
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


@pytest.fixture()
def open_period(db):
    """Active selection window around now."""
    now = datetime.now()
    config = CourseSelectionConfig(
        semester="2026春",
        academic_year="2025-2026",
        round_number=1,
        round_name="Round 1",
        start_time=now - timedelta(hours=1),
        end_time=now + timedelta(hours=1),
        status="active",
        description="First round",
    )
    db.add(config)
    db.commit()
    db.refresh(config)
    return config


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def login_as(client):
    def _login(user):
        principal = SimpleNamespace(id=user.id, username=user.username, role=user.role, is_active=True)
        app.dependency_overrides[get_current_user] = lambda: principal
        return principal

    return _login
