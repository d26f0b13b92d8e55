from fastapi import APIRouter, Depends, Query

from core.auth import get_current_user
from core.db import DB
from core.errors import AppError
from core.social_service import toggle_follow, list_followers, list_following
from .base import success_response, http_error

router = APIRouter(prefix="/social", tags=["Social"])


@router.post("/follow/{user_id}", summary="Toggle follow")
async def post_follow(user_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(toggle_follow(session, current_user["id"], user_id))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/followers/{user_id}", summary="Followers of a user")
async def get_followers(user_id: str, limit: int = Query(20, ge=1, le=100), offset: int = Query(0, ge=0)):
    session = DB.get_session()
    try:
        return success_response(list_followers(session, user_id, limit=limit, offset=offset))
    finally:
        session.close()


@router.get("/following/{user_id}", summary="Users followed by a user")
async def get_following(user_id: str, limit: int = Query(20, ge=1, le=100), offset: int = Query(0, ge=0)):
    session = DB.get_session()
    try:
        return success_response(list_following(session, user_id, limit=limit, offset=offset))
    finally:
        session.close()
