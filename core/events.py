"""
core/events.py — 结构化事件日志

格式：event=xxx | key=val | key=val

用法：
    from core.log import get_logger
    from core.events import log_event, E

    logger = get_logger(__name__)
    log_event(logger, E.AI_USAGE_CONSUME, user_id="u1", used=3, limit=5)
    # 输出：event=ai.usage.consume | user_id=u1 | used=3 | limit=5
"""

import logging
from typing import Any


class E:
    """事件类型常量，按功能模块分组。"""

    # ── 认证 Auth ──────────────────────────────────────────────────────────────
    AUTH_REGISTER = "auth.register"
    AUTH_LOGIN_SUCCESS = "auth.login.success"
    AUTH_LOGIN_FAIL = "auth.login.fail"
    AUTH_TOKEN_REFRESH = "auth.token.refresh"
    AUTH_SESSION_SYNC = "auth.session.sync"
    AUTH_SESSION_CLEAR = "auth.session.clear"
    AUTH_SESSION_KEEPER_START = "auth.session.keeper_start"
    AUTH_SESSION_KEEPER_STOP = "auth.session.keeper_stop"

    # ── AI 配额 Quota ──────────────────────────────────────────────────────────
    AI_USAGE_CHECK = "ai.usage.check"
    AI_USAGE_EXCEED = "ai.usage.exceed"
    AI_USAGE_CONSUME = "ai.usage.consume"
    AI_USAGE_RESET = "ai.usage.reset"
    AI_USAGE_CONFLICT = "ai.usage.conflict"

    # ── AI 生成 Generate ───────────────────────────────────────────────────────
    AI_CHAT_START = "ai.chat.start"
    AI_CHAT_COMPLETE = "ai.chat.complete"
    AI_CHAT_FAIL = "ai.chat.fail"
    AI_GATEWAY_FAIL = "ai.gateway.fail"
    AI_IMAGE_COMPLETE = "ai.image.complete"
    AI_STORY_COMPLETE = "ai.story.complete"

    # ── 内容 Content ───────────────────────────────────────────────────────────
    CHARACTER_CREATE = "character.create"
    CHARACTER_UPDATE = "character.update"
    CHARACTER_DELETE = "character.delete"
    STORY_CREATE = "story.create"
    STORY_UPDATE = "story.update"
    STORY_DELETE = "story.delete"
    STORY_EXPORT = "story.export"
    CONVERSATION_CREATE = "conversation.create"
    CONVERSATION_DELETE = "conversation.delete"

    # ── 社区 Community ─────────────────────────────────────────────────────────
    POST_CREATE = "community.post.create"
    POST_LIKE_TOGGLE = "community.post.like_toggle"
    POST_LIKE_ROLLBACK = "community.post.like_rollback"
    COMMENT_CREATE = "community.comment.create"
    FOLLOW_TOGGLE = "social.follow.toggle"

    # ── 系统 System ────────────────────────────────────────────────────────────
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_DB_INIT = "system.db_init"


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "info",
    **fields: Any,
) -> None:
    """记录结构化事件日志；超过 300 字符的字段会被截断。"""
    parts = [f"event={event}"]
    for k, v in fields.items():
        sv = v if isinstance(v, str) else str(v)
        if len(sv) > 300:
            sv = sv[:297] + "..."
        parts.append(f"{k}={sv}")
    getattr(logger, level)(" | ".join(parts), stacklevel=2)
