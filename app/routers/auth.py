from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.user import UserCreate, UserOut
from app.utils.auth import authenticate, create_access_token, get_current_user, hash_password

import logging
logger = logging.getLogger("app.auth")


router = APIRouter(prefix="/auth", tags=["Auth"])


# 註冊（學生）
@router.post("/register", response_model=UserOut)
def register(user_data: UserCreate, db: Session = Depends(get_db)):

    exists = db.query(User).filter(User.username == user_data.username).first()
    if exists:
        raise HTTPException(status_code=400, detail="Username already exists")

    if user_data.student_id:
        taken = db.query(User.id).filter(User.student_id == user_data.student_id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Student id already registered")

    new_user = User(
        username=user_data.username,
        password_hash=hash_password(user_data.password),
        role="student",
        real_name=user_data.real_name,
        student_id=user_data.student_id,
        credit_limit=settings.DEFAULT_CREDIT_LIMIT,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("registered user %s", new_user.username)
    return new_user


# 登入
@router.post("/login")
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = authenticate(db, form_data.username, form_data.password)
    if user is None:
        raise HTTPException(status_code=403, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User is disabled")

    token = create_access_token(user)
    logger.info("user %s logged in", user.username)
    return {"access_token": token, "token_type": "bearer"}


# 取得使用者資料
@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
