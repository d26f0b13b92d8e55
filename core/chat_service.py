"""
core/chat_service.py — 角色对话

流程：配额预检（不消耗）→ 角色/会话校验 → 调用模型 → 同一事务内
CAS 消耗配额并追加消息。模型调用失败时不落库任何数据。
"""
from datetime import datetime
from typing import Dict, List, Optional

from core import ai_gateway, quota_service
from core.character_service import get_character, build_system_prompt
from core.conversation_service import find_conversation, append_exchange
from core.errors import Unauthorized, UpstreamGatewayFailure
from core.events import log_event, E
from core.log import get_logger
from core.user_service import get_user

logger = get_logger(__name__)


def chat(
    session,
    user_id: str,
    conversation_id: str,
    character_id: str,
    message: str,
    history: List[Dict[str, str]],
    now: Optional[datetime] = None,
) -> Dict:
    log_event(logger, E.AI_CHAT_START, user_id=user_id, conversation_id=conversation_id)
    get_user(session, user_id)

    precheck = quota_service.peek(session, user_id, now=now)
    if not precheck.allowed:
        log_event(logger, E.AI_USAGE_EXCEED, level="warning", user_id=user_id, limit=precheck.reason.limit)
        raise precheck.reason

    character = get_character(session, character_id)
    conversation = find_conversation(session, conversation_id)
    if conversation is not None and conversation.user_id != user_id:
        raise Unauthorized()

    messages = [{"role": m["role"], "content": m["content"]} for m in (history or [])]
    messages.append({"role": "user", "content": message})
    try:
        reply = ai_gateway.generate_text(build_system_prompt(character), messages)
    except UpstreamGatewayFailure as e:
        log_event(logger, E.AI_CHAT_FAIL, level="error", user_id=user_id, reason=e.message)
        session.rollback()
        raise

    try:
        quota_service.check_and_consume(session, user_id, now=now)
        if conversation is not None:
            append_exchange(conversation, message, reply)
        session.commit()
    except Exception:
        session.rollback()
        raise

    user = get_user(session, user_id)
    log_event(logger, E.AI_CHAT_COMPLETE, user_id=user_id, conversation_id=conversation_id)
    return {
        "response": reply,
        "conversation_id": conversation_id,
        "daily_ai": quota_service.usage_snapshot(user, now=now),
    }
