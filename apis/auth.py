from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import Field

from core.auth import (
    authenticate_user,
    create_access_token,
    get_current_user,
    get_optional_user,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)
from core.db import DB
from core.errors import AppError
from core.events import log_event, E
from core.log import get_logger
from core.user_service import register_user
from .base import StrictModel, success_response, error_response, http_error

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _token_payload(user_id: str) -> dict:
    access_token = create_access_token(
        data={"sub": user_id}, expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


class RegisterRequest(StrictModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=64)
    name: str = Field(default="", max_length=100)


@router.post("/register", summary="Email registration")
async def register(payload: RegisterRequest):
    session = DB.get_session()
    try:
        user = register_user(session, payload.email, payload.password, payload.name)
        return success_response({"id": user.id, "email": user.email, **_token_payload(user.id)}, message="Registered")
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/login", summary="Login")
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        log_event(logger, E.AUTH_LOGIN_FAIL, level="warning", email=form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response(code=40101, message="Invalid email or password"),
        )
    log_event(logger, E.AUTH_LOGIN_SUCCESS, user_id=user.id)
    return success_response(_token_payload(user.id))


@router.post("/token", summary="OAuth2 token")
async def get_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response(code=40101, message="Invalid email or password"),
        )
    return _token_payload(user.id)


@router.post("/refresh", summary="Refresh token")
async def refresh_token(current_user: dict = Depends(get_current_user)):
    log_event(logger, E.AUTH_TOKEN_REFRESH, user_id=current_user["id"])
    return success_response(_token_payload(current_user["id"]))


@router.get("/session", summary="Current session")
async def get_session(current_user: dict = Depends(get_optional_user)):
    """客户端定时拉取：返回用户和轮换后的 token；未登录时 user 为 null。"""
    if not current_user:
        return success_response({"user": None, "session": None})
    return success_response({
        "user": {k: current_user[k] for k in ["id", "email", "name", "is_premium"]},
        "session": {"token": _token_payload(current_user["id"])["access_token"]},
    })


@router.get("/verify", summary="Verify token")
async def verify_token(current_user: dict = Depends(get_current_user)):
    return success_response({
        "is_valid": True,
        "user_id": current_user["id"],
        "expires_at": current_user.get("exp"),
    })
