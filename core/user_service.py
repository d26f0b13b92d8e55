import uuid
from datetime import datetime
from typing import Dict, Optional

from core.auth import pwd_context, get_user_by_email
from core.errors import InvalidRequest, UserNotFound
from core.events import log_event, E
from core.log import get_logger
from core.models.user import User as DBUser
from core.quota_service import usage_snapshot

logger = get_logger(__name__)


def get_user(session, user_id: str) -> DBUser:
    user = session.query(DBUser).filter(DBUser.id == str(user_id or "")).first()
    if not user:
        raise UserNotFound()
    return user


def register_user(session, email: str, password: str, name: str = "", is_premium: bool = False) -> DBUser:
    email_value = str(email or "").strip().lower()
    if get_user_by_email(session, email_value):
        raise InvalidRequest("Email already registered")
    now = datetime.now()
    user = DBUser(
        id=str(uuid.uuid4()),
        email=email_value,
        name=(name or email_value.split("@")[0])[:100],
        avatar_url="",
        password_hash=pwd_context.hash(password),
        is_active=True,
        is_premium=bool(is_premium),
        daily_ai_conversations_used=0,
        last_conversation_reset=now,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    log_event(logger, E.AUTH_REGISTER, user_id=user.id)
    return user


def user_profile(user: DBUser, now: Optional[datetime] = None) -> Dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name or "",
        "avatar_url": user.avatar_url or "",
        "is_premium": bool(user.is_premium),
        "daily_ai_conversations_used": int(user.daily_ai_conversations_used or 0),
        "daily_ai": usage_snapshot(user, now=now),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def update_profile(session, user_id: str, name: str = None, avatar_url: str = None) -> Dict:
    updates = {}
    if name is not None:
        updates["name"] = name
    if avatar_url is not None:
        updates["avatar_url"] = avatar_url
    if not updates:
        return {"success": False, "message": "No fields to update"}
    user = get_user(session, user_id)
    for key, value in updates.items():
        setattr(user, key, value)
    user.updated_at = datetime.now()
    session.commit()
    logger.info("用户资料已更新 user_id=%s fields=%s", user_id, ",".join(updates.keys()))
    return {"success": True, "message": "Profile updated"}
