from typing import List, Literal

from fastapi import APIRouter, Depends
from pydantic import Field

from core import ai_gateway
from core.auth import get_current_user
from core.chat_service import chat
from core.character_service import find_characters
from core.db import DB
from core.errors import AppError, PremiumRequired, UpstreamGatewayFailure
from core.events import log_event, E
from core.log import get_logger
from core.quota_service import usage_snapshot
from core.user_service import get_user
from .base import StrictModel, success_response, http_error

logger = get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])


class ChatMessage(StrictModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(StrictModel):
    conversation_id: str = Field(..., min_length=1, max_length=255)
    character_id: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=8000)
    conversation_history: List[ChatMessage] = Field(default_factory=list, max_length=200)


class GenerateImageRequest(StrictModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    style: str = Field(..., min_length=1, max_length=64)


class GenerateStoryRequest(StrictModel):
    prompt: str = Field(..., min_length=1, max_length=4000)
    genre: str = Field(..., min_length=1, max_length=64)
    character_ids: List[str] = Field(default_factory=list, max_length=20)


@router.post("/chat", summary="Chat with a character")
async def post_chat(payload: ChatRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        data = chat(
            session,
            user_id=current_user["id"],
            conversation_id=payload.conversation_id,
            character_id=payload.character_id,
            message=payload.message,
            history=[m.model_dump() for m in payload.conversation_history],
        )
        return success_response(data)
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.get("/usage", summary="Daily AI usage")
async def get_usage(current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(usage_snapshot(get_user(session, current_user["id"])))
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/generate-image", summary="Generate an image (premium)")
async def post_generate_image(payload: GenerateImageRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        user = get_user(session, current_user["id"])
        if not user.is_premium:
            raise PremiumRequired("Image generation is only available for premium users")
        image_url = ai_gateway.generate_image(payload.prompt, payload.style)
        if not image_url:
            raise UpstreamGatewayFailure("Failed to generate image")
        log_event(logger, E.AI_IMAGE_COMPLETE, user_id=user.id)
        return success_response({"image_url": image_url})
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()


@router.post("/generate-story", summary="Generate a story")
async def post_generate_story(payload: GenerateStoryRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        characters = [
            {"name": c.name, "description": c.description}
            for c in find_characters(session, payload.character_ids)
        ]
        story = ai_gateway.generate_story(payload.prompt, payload.genre, characters)
        log_event(logger, E.AI_STORY_COMPLETE, user_id=current_user["id"], title=story["title"])
        return success_response(story)
    except AppError as e:
        raise http_error(e)
    finally:
        session.close()
