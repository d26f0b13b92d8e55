import json
import uuid
from datetime import datetime
from typing import Dict, List

from core.errors import StoryNotFound, Unauthorized
from core.events import log_event, E
from core.log import get_logger
from core.models.story import Story

logger = get_logger(__name__)

EDITABLE_FIELDS = ["title", "description", "genre", "content", "is_public", "is_private"]

EXPORT_FORMAT_PDF = "pdf"
EXPORT_FORMAT_TEXT = "text"


def story_to_dict(story: Story) -> Dict:
    return {
        "id": story.id,
        "user_id": story.user_id,
        "character_id": story.character_id,
        "title": story.title,
        "description": story.description,
        "genre": story.genre,
        "content": story.content,
        "is_public": bool(story.is_public),
        "is_private": bool(story.is_private),
        "likes_count": int(story.likes_count or 0),
        "created_at": story.created_at.isoformat() if story.created_at else None,
    }


def list_stories(session, public_only: bool = False, genre: str = "", limit: int = 20, offset: int = 0) -> List[Dict]:
    limit = max(1, min(int(limit or 20), 100))
    offset = max(0, int(offset or 0))
    query = session.query(Story)
    if public_only:
        query = query.filter(Story.is_public == True)  # noqa: E712
    genre_text = str(genre or "").strip()
    if genre_text:
        query = query.filter(Story.genre == genre_text)
    rows = query.order_by(Story.created_at.desc()).offset(offset).limit(limit).all()
    return [story_to_dict(x) for x in rows]


def get_story(session, story_id: str) -> Story:
    story = session.query(Story).filter(Story.id == str(story_id or "")).first()
    if not story:
        raise StoryNotFound()
    return story


def get_owned_story(session, story_id: str, user_id: str) -> Story:
    story = get_story(session, story_id)
    if story.user_id != user_id:
        logger.warning("故事越权访问 story_id=%s user_id=%s", story_id, user_id)
        raise Unauthorized()
    return story


def create_story(session, user_id: str, data: Dict) -> Story:
    story = Story(
        id=str(uuid.uuid4()),
        user_id=user_id,
        character_id=data["character_id"],
        title=data["title"],
        description=data["description"],
        genre=data["genre"],
        content=data.get("content") if data.get("content") is not None else "",
        is_public=bool(data.get("is_public") or False),
        is_private=bool(data.get("is_private") or False),
        likes_count=0,
        created_at=datetime.now(),
    )
    session.add(story)
    session.commit()
    session.refresh(story)
    log_event(logger, E.STORY_CREATE, story_id=story.id, user_id=user_id)
    return story


def update_story(session, story_id: str, user_id: str, data: Dict) -> Story:
    story = get_owned_story(session, story_id, user_id)
    for key in EDITABLE_FIELDS:
        if key in data and data[key] is not None:
            setattr(story, key, data[key])
    session.commit()
    session.refresh(story)
    log_event(logger, E.STORY_UPDATE, story_id=story_id, user_id=user_id)
    return story


def delete_story(session, story_id: str, user_id: str) -> None:
    story = get_owned_story(session, story_id, user_id)
    session.delete(story)
    session.commit()
    log_event(logger, E.STORY_DELETE, story_id=story_id, user_id=user_id)


def export_story(session, story_id: str, user_id: str, is_premium: bool) -> Dict:
    """付费用户导出 PDF（仅返回下载描述），免费用户导出纯文本。"""
    story = get_owned_story(session, story_id, user_id)
    if is_premium:
        log_event(logger, E.STORY_EXPORT, story_id=story_id, format=EXPORT_FORMAT_PDF)
        return {
            "format": EXPORT_FORMAT_PDF,
            "download_url": f"/api/stories/{story.id}/export/pdf",
            "title": story.title,
        }
    content = story.content if isinstance(story.content, str) else json.dumps(story.content, ensure_ascii=False)
    log_event(logger, E.STORY_EXPORT, story_id=story_id, format=EXPORT_FORMAT_TEXT)
    return {
        "format": EXPORT_FORMAT_TEXT,
        "content": f"{story.title}\n\n{story.description}\n\n{content}",
        "title": story.title,
    }
