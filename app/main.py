# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.database import Base, engine
from app.routers import auth, courses, selections, selection_config, emergency, logs

import time
import logging
from fastapi import Request
from app.logging_config import setup_logging
from app.utils.errors import install_error_handlers


setup_logging()
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 建立資料表（若不存在）
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="PE Course Selection Backend", version="1.0.0", lifespan=lifespan)

# CORS 設定
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
        ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
        return response
    except Exception:
        ms = int((time.time() - start) * 1000)
        logger.exception("Unhandled error %s %s (%dms)", request.method, request.url.path, ms)
        raise


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Routers
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(selections.router)
app.include_router(selection_config.router)
app.include_router(emergency.router)
app.include_router(logs.router)

@app.get("/")
def root():
    return {"message": "Course selection backend is running!"}
