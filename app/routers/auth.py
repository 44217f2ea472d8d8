from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.utils.hashing import hash_password, password_fits, verify_password
from app.utils.auth import STUDENT, create_access_token, get_current_user
from app.services.catalog import CatalogStore
from app.services.notifier import DbNotifier
from app.services.progress_ledger import ProgressLedger
from app.schemas.user import UserCreate, UserOut
from app.models.user import User
from fastapi.security import OAuth2PasswordRequestForm

import logging
logger = logging.getLogger("app.auth")


router = APIRouter(prefix="/auth", tags=["Auth"])


# 註冊
@router.post("/register", response_model=UserOut)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    if not password_fits(user_data.password):
        raise HTTPException(status_code=400, detail="Password too long (bcrypt max 72 bytes)")

    exists = db.query(User).filter(User.username == user_data.username).first()
    if exists:
        raise HTTPException(status_code=400, detail="Username already exists")

    new_user = User(
        username=user_data.username,
        password_hash=hash_password(user_data.password),
        role=STUDENT
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("[auth] registered %s", new_user.username)

    # 新生直接進入第一學期
    if CatalogStore(db).get_first_semester() is not None:
        ProgressLedger(db, notifier=DbNotifier(db)).enroll_student(new_user.id)
        db.refresh(new_user)
    return new_user


# 登入
@router.post("/login")
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == form_data.username).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=403, detail="Invalid credentials")
    token = create_access_token({"sub": user.username, "role": user.role})
    return {"access_token": token, "token_type": "bearer"}


# 取得使用者資料
@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
