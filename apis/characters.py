from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from core.auth import get_current_user
from core.db import DB
from core.errors import AppError
from core.character_service import (
    list_characters,
    get_character,
    create_character,
    update_character,
    delete_character,
    character_to_dict,
)
from .base import StrictModel, success_response, http_error

router = APIRouter(prefix="/characters", tags=["Characters"])


class CreateCharacterRequest(StrictModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str = Field(..., min_length=1)
    personality: str = Field(..., min_length=1)
    backstory: str = Field(..., min_length=1)
    style: str = Field(..., min_length=1, max_length=64)
    is_public: bool = False
    avatar_url: Optional[str] = Field(default=None, max_length=500)


class UpdateCharacterRequest(StrictModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, min_length=1)
    personality: Optional[str] = Field(default=None, min_length=1)
    backstory: Optional[str] = Field(default=None, min_length=1)
    style: Optional[str] = Field(default=None, min_length=1, max_length=64)
    is_public: Optional[bool] = None
    avatar_url: Optional[str] = Field(default=None, max_length=500)


@router.get("", summary="List characters")
async def get_characters(
    public: bool = Query(False),
    style: str = Query("", max_length=64),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    session = DB.get_session()
    try:
        return success_response(list_characters(session, public_only=public, style=style, limit=limit, offset=offset))
    finally:
        session.close()


@router.get("/{character_id}", summary="Get character")
async def get_character_detail(character_id: str):
    session = DB.get_session()
    try:
        return success_response(character_to_dict(get_character(session, character_id)))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("", summary="Create character")
async def post_character(payload: CreateCharacterRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        character = create_character(session, current_user["id"], payload.model_dump())
        return success_response(character_to_dict(character), message="Character created")
    finally:
        session.close()


@router.put("/{character_id}", summary="Update character")
async def put_character(character_id: str, payload: UpdateCharacterRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        character = update_character(session, character_id, current_user["id"], payload.model_dump(exclude_unset=True))
        return success_response(character_to_dict(character))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.delete("/{character_id}", summary="Delete character")
async def remove_character(character_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        delete_character(session, character_id, current_user["id"])
        return success_response({"success": True})
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()
