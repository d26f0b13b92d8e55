from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from core.auth import get_current_user
from core.db import DB
from core.errors import AppError
from core.character_service import get_character
from core.story_service import (
    list_stories,
    get_story,
    create_story,
    update_story,
    delete_story,
    export_story,
    story_to_dict,
)
from .base import StrictModel, success_response, http_error

router = APIRouter(prefix="/stories", tags=["Stories"])


class CreateStoryRequest(StrictModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1)
    genre: str = Field(..., min_length=1, max_length=64)
    character_id: str = Field(..., min_length=1, max_length=255)
    content: Any = None
    is_public: bool = False
    is_private: bool = False


class UpdateStoryRequest(StrictModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = Field(default=None, min_length=1)
    genre: Optional[str] = Field(default=None, min_length=1, max_length=64)
    content: Any = None
    is_public: Optional[bool] = None
    is_private: Optional[bool] = None


@router.get("", summary="List stories")
async def get_stories(
    public: bool = Query(False),
    genre: str = Query("", max_length=64),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    session = DB.get_session()
    try:
        return success_response(list_stories(session, public_only=public, genre=genre, limit=limit, offset=offset))
    finally:
        session.close()


@router.get("/{story_id}", summary="Get story")
async def get_story_detail(story_id: str):
    session = DB.get_session()
    try:
        return success_response(story_to_dict(get_story(session, story_id)))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("", summary="Create story")
async def post_story(payload: CreateStoryRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        get_character(session, payload.character_id)
        story = create_story(session, current_user["id"], payload.model_dump())
        return success_response(story_to_dict(story), message="Story created")
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.put("/{story_id}", summary="Update story")
async def put_story(story_id: str, payload: UpdateStoryRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        story = update_story(session, story_id, current_user["id"], payload.model_dump(exclude_unset=True))
        return success_response(story_to_dict(story))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.delete("/{story_id}", summary="Delete story")
async def remove_story(story_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        delete_story(session, story_id, current_user["id"])
        return success_response({"success": True})
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/{story_id}/export", summary="Export story")
async def post_story_export(story_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        data = export_story(session, story_id, current_user["id"], is_premium=bool(current_user.get("is_premium")))
        return success_response(data)
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()
