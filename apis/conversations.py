from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from core.auth import get_current_user
from core.db import DB
from core.errors import AppError
from core.character_service import get_character
from core.conversation_service import (
    list_conversations,
    get_owned_conversation,
    create_conversation,
    delete_conversation,
    conversation_to_dict,
)
from .base import StrictModel, success_response, http_error

router = APIRouter(prefix="/conversations", tags=["Conversations"])


class CreateConversationRequest(StrictModel):
    character_id: str = Field(..., min_length=1, max_length=255)
    story_id: Optional[str] = Field(default=None, max_length=255)
    title: str = Field(..., min_length=1, max_length=300)


@router.get("", summary="List my conversations")
async def get_conversations(current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(list_conversations(session, current_user["id"]))
    finally:
        session.close()


@router.get("/{conversation_id}", summary="Get conversation")
async def get_conversation(conversation_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(conversation_to_dict(get_owned_conversation(session, conversation_id, current_user["id"])))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("", summary="Create conversation")
async def post_conversation(payload: CreateConversationRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        get_character(session, payload.character_id)
        conversation = create_conversation(
            session,
            user_id=current_user["id"],
            character_id=payload.character_id,
            title=payload.title,
            story_id=payload.story_id,
        )
        return success_response(conversation_to_dict(conversation))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.delete("/{conversation_id}", summary="Delete conversation")
async def remove_conversation(conversation_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        delete_conversation(session, conversation_id, current_user["id"])
        return success_response({"success": True})
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()
