from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from core.auth import get_current_user
from core.db import DB
from core.errors import AppError
from core.user_service import get_user, user_profile, update_profile
from .base import StrictModel, success_response, http_error

router = APIRouter(prefix="/users", tags=["Users"])


class UpdateProfileRequest(StrictModel):
    name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)


@router.get("/me", summary="Current user profile")
async def get_me(current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(user_profile(get_user(session, current_user["id"])))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.put("/me", summary="Update current user profile")
async def update_me(payload: UpdateProfileRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(update_profile(session, current_user["id"], payload.name, payload.avatar_url))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()
