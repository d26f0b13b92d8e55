import uuid
from datetime import datetime
from typing import Dict, List

from core.errors import CharacterNotFound, Unauthorized
from core.events import log_event, E
from core.log import get_logger
from core.models.character import Character

logger = get_logger(__name__)

EDITABLE_FIELDS = ["name", "description", "personality", "backstory", "style", "is_public", "avatar_url"]


def _clamp_page(limit: int, offset: int):
    return max(1, min(int(limit or 20), 100)), max(0, int(offset or 0))


def character_to_dict(character: Character) -> Dict:
    return {
        "id": character.id,
        "user_id": character.user_id,
        "name": character.name,
        "description": character.description,
        "personality": character.personality,
        "backstory": character.backstory,
        "avatar_url": character.avatar_url,
        "style": character.style,
        "is_public": bool(character.is_public),
        "likes_count": int(character.likes_count or 0),
        "created_at": character.created_at.isoformat() if character.created_at else None,
    }


def build_system_prompt(character: Character) -> str:
    return (
        f"You are {character.name}. {character.description}\n"
        f"Personality: {character.personality}\n"
        f"Backstory: {character.backstory}\n"
        f"Style: {character.style}"
    )


def list_characters(session, public_only: bool = False, style: str = "", limit: int = 20, offset: int = 0) -> List[Dict]:
    limit, offset = _clamp_page(limit, offset)
    query = session.query(Character)
    if public_only:
        query = query.filter(Character.is_public == True)  # noqa: E712
    style_text = str(style or "").strip()
    if style_text:
        query = query.filter(Character.style == style_text)
    rows = query.order_by(Character.created_at.desc()).offset(offset).limit(limit).all()
    return [character_to_dict(x) for x in rows]


def get_character(session, character_id: str) -> Character:
    character = session.query(Character).filter(Character.id == str(character_id or "")).first()
    if not character:
        raise CharacterNotFound()
    return character


def get_owned_character(session, character_id: str, user_id: str) -> Character:
    character = get_character(session, character_id)
    if character.user_id != user_id:
        logger.warning("角色越权访问 character_id=%s user_id=%s", character_id, user_id)
        raise Unauthorized()
    return character


def create_character(session, user_id: str, data: Dict) -> Character:
    character = Character(
        id=str(uuid.uuid4()),
        user_id=user_id,
        name=data["name"],
        description=data["description"],
        personality=data["personality"],
        backstory=data["backstory"],
        style=data["style"],
        is_public=bool(data.get("is_public") or False),
        avatar_url=data.get("avatar_url"),
        likes_count=0,
        created_at=datetime.now(),
    )
    session.add(character)
    session.commit()
    session.refresh(character)
    log_event(logger, E.CHARACTER_CREATE, character_id=character.id, user_id=user_id)
    return character


def update_character(session, character_id: str, user_id: str, data: Dict) -> Character:
    character = get_owned_character(session, character_id, user_id)
    changed = []
    for key in EDITABLE_FIELDS:
        if key in data and data[key] is not None:
            setattr(character, key, data[key])
            changed.append(key)
    session.commit()
    session.refresh(character)
    log_event(logger, E.CHARACTER_UPDATE, character_id=character_id, fields=",".join(changed))
    return character


def delete_character(session, character_id: str, user_id: str) -> None:
    character = get_owned_character(session, character_id, user_id)
    session.delete(character)
    session.commit()
    log_event(logger, E.CHARACTER_DELETE, character_id=character_id, user_id=user_id)


def find_characters(session, character_ids: List[str]) -> List[Character]:
    ids = [str(x) for x in (character_ids or []) if x]
    if not ids:
        return []
    return session.query(Character).filter(Character.id.in_(ids)).all()
