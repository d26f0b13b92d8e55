"""
core/auth.py — Bearer Token 鉴权

JWT（PyJWT）签发与校验，passlib 负责密码哈希。
get_current_user 作为 FastAPI 依赖，返回 {"id", "email", "is_premium", "exp"}。
"""
import os
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext

from core.config import cfg, API_BASE
from core.db import DB
from core.models.user import User as DBUser

SECRET_KEY = str(cfg.get("secret", "") or os.getenv("SECRET_KEY", "") or "charachat-dev-secret")
ALGORITHM = "HS256"
try:
    ACCESS_TOKEN_EXPIRE_MINUTES = int(cfg.get("token_expire_minutes", 60 * 24) or 60 * 24)
except Exception:
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{API_BASE}/auth/token", auto_error=False)


def get_user_by_email(session, email: str) -> Optional[DBUser]:
    value = str(email or "").strip().lower()
    if not value:
        return None
    return session.query(DBUser).filter(DBUser.email == value).first()


def authenticate_user(email: str, password: str) -> Optional[DBUser]:
    session = DB.get_session()
    try:
        user = get_user_by_email(session, email)
        if not user or not user.is_active:
            return None
        if not user.verify_password(password):
            return None
        return user
    finally:
        session.close()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": 40101, "message": "Authentication required"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_user(token: str) -> Optional[dict]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        return None
    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        return None
    session = DB.get_session()
    try:
        user = session.query(DBUser).filter(DBUser.id == user_id).first()
        if not user or not user.is_active:
            return None
        return {
            "id": user.id,
            "email": user.email,
            "name": user.name or "",
            "is_premium": bool(user.is_premium),
            "exp": payload.get("exp"),
        }
    finally:
        session.close()


async def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    user = resolve_user(token)
    if not user:
        raise _credentials_exception()
    return user


async def get_optional_user(token: str = Depends(oauth2_scheme)) -> Optional[dict]:
    """公开接口使用：有 token 时解析用户，没有时返回 None。"""
    return resolve_user(token)
