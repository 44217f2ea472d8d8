from datetime import datetime, timedelta
from jose import jwt, JWTError
from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer

from app.config import settings
from app.database import get_db
from sqlalchemy.orm import Session
from app.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

ADMIN = "admin"
STUDENT = "student"


def create_access_token(data: dict, expires_minutes=None):
    to_encode = data.copy()
    minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    to_encode.update({"exp": datetime.utcnow() + timedelta(minutes=minutes)})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=403, detail="Invalid authentication token")
    if not payload.get("sub"):
        raise HTTPException(status_code=403, detail="Invalid token")
    return payload


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    payload = decode_token(token)
    user = db.query(User).filter(User.username == payload["sub"]).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


# 管理者：核准 / 退回 / 修正進度
def require_admin(user=Depends(get_current_user)):
    if getattr(user, "role", None) != ADMIN:
        raise HTTPException(status_code=403, detail="Admin only")
    return user


# 學生：只能動自己的進度
def require_student(user=Depends(get_current_user)):
    if getattr(user, "role", None) != STUDENT:
        raise HTTPException(status_code=403, detail="Student only")
    return user
