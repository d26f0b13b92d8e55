import uuid
from datetime import datetime

from core.db import DB
from core.character_service import create_character
from core.user_service import register_user


def new_session():
    DB.create_tables()
    return DB.get_session()


def make_user(session, is_premium=False, used=0, reset_at=None):
    user = register_user(session, f"u_{uuid.uuid4().hex[:10]}@example.com", "demo123456", is_premium=is_premium)
    user.daily_ai_conversations_used = used
    user.last_conversation_reset = reset_at or datetime.now()
    session.commit()
    return user


def make_character(session, user_id, **overrides):
    data = {
        "name": "Luna",
        "description": "A curious moon witch.",
        "personality": "Playful",
        "backstory": "Raised by owls.",
        "style": "fantasy",
        "is_public": True,
    }
    data.update(overrides)
    return create_character(session, user_id, data)
