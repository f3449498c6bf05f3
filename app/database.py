# app/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings


def make_engine(url: str):
    """
    - postgres: pool_pre_ping 斷線重連；lock_timeout / statement_timeout 讓卡住的交易自動失敗 rollback
    - sqlite: 給測試用，多執行緒共用檔案，需要 busy timeout
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=1800,
        connect_args={
            "options": (
                f"-c lock_timeout={settings.DB_LOCK_TIMEOUT_MS} "
                f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
            )
        },
    )


def make_session_factory(bind) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # 沒 commit 的交易（例如 request 中途斷線）一律 rollback
        db.close()
