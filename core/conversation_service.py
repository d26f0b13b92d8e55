import uuid
from datetime import datetime
from typing import Dict, List, Optional

from core.errors import ConversationNotFound, Unauthorized
from core.events import log_event, E
from core.log import get_logger
from core.models.conversation import Conversation

logger = get_logger(__name__)


def conversation_to_dict(conversation: Conversation) -> Dict:
    return {
        "id": conversation.id,
        "user_id": conversation.user_id,
        "character_id": conversation.character_id,
        "story_id": conversation.story_id,
        "title": conversation.title,
        "messages": list(conversation.messages or []),
        "created_at": conversation.created_at.isoformat() if conversation.created_at else None,
        "updated_at": conversation.updated_at.isoformat() if conversation.updated_at else None,
    }


def list_conversations(session, user_id: str) -> List[Dict]:
    rows = session.query(Conversation).filter(
        Conversation.user_id == user_id,
    ).order_by(Conversation.updated_at.desc()).all()
    return [conversation_to_dict(x) for x in rows]


def find_conversation(session, conversation_id: str) -> Optional[Conversation]:
    return session.query(Conversation).filter(Conversation.id == str(conversation_id or "")).first()


def get_owned_conversation(session, conversation_id: str, user_id: str) -> Conversation:
    conversation = find_conversation(session, conversation_id)
    if not conversation:
        raise ConversationNotFound()
    if conversation.user_id != user_id:
        logger.warning("会话越权访问 conversation_id=%s user_id=%s", conversation_id, user_id)
        raise Unauthorized()
    return conversation


def create_conversation(session, user_id: str, character_id: str, title: str, story_id: str = None) -> Conversation:
    now = datetime.now()
    conversation = Conversation(
        id=str(uuid.uuid4()),
        user_id=user_id,
        character_id=character_id,
        story_id=story_id or None,
        title=title,
        messages=[],
        created_at=now,
        updated_at=now,
    )
    session.add(conversation)
    session.commit()
    session.refresh(conversation)
    log_event(logger, E.CONVERSATION_CREATE, conversation_id=conversation.id, user_id=user_id)
    return conversation


def delete_conversation(session, conversation_id: str, user_id: str) -> None:
    conversation = get_owned_conversation(session, conversation_id, user_id)
    session.delete(conversation)
    session.commit()
    log_event(logger, E.CONVERSATION_DELETE, conversation_id=conversation_id, user_id=user_id)


def append_exchange(conversation: Conversation, user_message: str, assistant_message: str) -> None:
    """追加一轮对话（不提交，由调用方控制事务）。"""
    messages = list(conversation.messages or []) if isinstance(conversation.messages, list) else []
    messages.append({"role": "user", "content": user_message})
    messages.append({"role": "assistant", "content": assistant_message})
    # JSON 列需要整体替换才会被标记为已修改
    conversation.messages = messages
    conversation.updated_at = datetime.now()
