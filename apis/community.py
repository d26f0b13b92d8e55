from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from core.auth import get_current_user, get_optional_user
from core.db import DB
from core.errors import AppError
from core.community_service import (
    list_feed,
    create_post,
    toggle_like,
    list_comments,
    create_comment,
    post_to_dict,
    comment_to_dict,
)
from .base import StrictModel, success_response, http_error

router = APIRouter(prefix="/community", tags=["Community"])


class CreatePostRequest(StrictModel):
    content_type: str = Field(..., min_length=1, max_length=32)
    content_id: str = Field(..., min_length=1, max_length=255)
    caption: Optional[str] = Field(default=None, max_length=2000)


class CreateCommentRequest(StrictModel):
    content: str = Field(..., min_length=1, max_length=2000)


@router.get("/feed", summary="Community feed")
async def get_feed(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Optional[dict] = Depends(get_optional_user),
):
    session = DB.get_session()
    try:
        viewer_id = current_user["id"] if current_user else None
        return success_response(list_feed(session, viewer_id=viewer_id, limit=limit, offset=offset))
    finally:
        session.close()


@router.post("/posts", summary="Create post")
async def post_community_post(payload: CreatePostRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        post = create_post(session, current_user["id"], payload.content_type, payload.content_id, payload.caption)
        return success_response(post_to_dict(post))
    finally:
        session.close()


@router.post("/posts/{post_id}/like", summary="Toggle like")
async def post_like(post_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(toggle_like(session, post_id, current_user["id"]))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/posts/{post_id}/comments", summary="List comments")
async def get_comments(
    post_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    session = DB.get_session()
    try:
        return success_response(list_comments(session, post_id, limit=limit, offset=offset))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/posts/{post_id}/comments", summary="Create comment")
async def post_comment(post_id: str, payload: CreateCommentRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        comment = create_comment(session, post_id, current_user["id"], payload.content)
        return success_response(comment_to_dict(comment))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()
