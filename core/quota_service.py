"""
core/quota_service.py — 免费用户 AI 对话配额（滚动 24 小时窗口）

decide() 只做判定；check_and_consume() 用 compare-and-set 落库：
UPDATE app_users SET ... WHERE id=? AND used=<读到的值> AND reset=<读到的值>
rowcount 为 0 说明并发请求先写入，重新读取后再判定。
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.config import cfg
from core.errors import QuotaConflict, QuotaExceeded, UserNotFound
from core.events import log_event, E
from core.log import get_logger
from core.models.user import User as DBUser

logger = get_logger(__name__)

DEFAULT_DAILY_LIMIT = 5
DEFAULT_WINDOW_HOURS = 24
DEFAULT_CAS_RETRIES = 5


def _int_value(value, default=0) -> int:
    try:
        return int(value)
    except Exception:
        return int(default)


def daily_limit() -> int:
    return max(1, _int_value(cfg.get("quota.daily_limit", DEFAULT_DAILY_LIMIT), DEFAULT_DAILY_LIMIT))


def window_duration() -> timedelta:
    hours = max(1, _int_value(cfg.get("quota.window_hours", DEFAULT_WINDOW_HOURS), DEFAULT_WINDOW_HOURS))
    return timedelta(hours=hours)


def _cas_retries() -> int:
    return max(1, _int_value(cfg.get("quota.cas_retries", DEFAULT_CAS_RETRIES), DEFAULT_CAS_RETRIES))


@dataclass(frozen=True)
class UsageRecord:
    is_premium: bool
    daily_ai_conversations_used: int
    last_conversation_reset: datetime

    @classmethod
    def from_user(cls, user) -> "UsageRecord":
        return cls(
            is_premium=bool(getattr(user, "is_premium", False)),
            daily_ai_conversations_used=max(0, _int_value(getattr(user, "daily_ai_conversations_used", 0), 0)),
            last_conversation_reset=getattr(user, "last_conversation_reset", None) or datetime.now(),
        )


@dataclass
class QuotaDecision:
    allowed: bool
    record: UsageRecord
    reason: Optional[QuotaExceeded] = None
    reset: bool = False
    changed: bool = field(default=False)


def decide(
    record: UsageRecord,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
    window: Optional[timedelta] = None,
) -> QuotaDecision:
    """纯判定，不落库。"""
    now = now or datetime.now()
    limit = daily_limit() if limit is None else int(limit)
    window = window_duration() if window is None else window

    if record.is_premium:
        return QuotaDecision(allowed=True, record=record)

    # 窗口到期：本次请求计为新窗口的第 1 次
    if now - record.last_conversation_reset >= window:
        updated = UsageRecord(is_premium=False, daily_ai_conversations_used=1, last_conversation_reset=now)
        return QuotaDecision(allowed=True, record=updated, reset=True, changed=True)

    if record.daily_ai_conversations_used >= limit:
        return QuotaDecision(allowed=False, record=record, reason=QuotaExceeded(limit))

    updated = UsageRecord(
        is_premium=False,
        daily_ai_conversations_used=record.daily_ai_conversations_used + 1,
        last_conversation_reset=record.last_conversation_reset,
    )
    return QuotaDecision(allowed=True, record=updated, changed=True)


def _load_user(session, user_id: str) -> DBUser:
    user = session.query(DBUser).filter(DBUser.id == user_id).first()
    if not user:
        raise UserNotFound()
    return user


def peek(session, user_id: str, now: Optional[datetime] = None) -> QuotaDecision:
    """判定但不消耗，用于调用模型前的提前拦截。"""
    record = UsageRecord.from_user(_load_user(session, user_id))
    decision = decide(record, now=now)
    log_event(logger, E.AI_USAGE_CHECK, user_id=user_id, allowed=decision.allowed,
              used=record.daily_ai_conversations_used)
    return decision


def _compare_and_set(session, user_id: str, previous: UsageRecord, updated: UsageRecord, now: datetime) -> bool:
    rowcount = session.query(DBUser).filter(
        DBUser.id == user_id,
        DBUser.is_premium == False,  # noqa: E712
        DBUser.daily_ai_conversations_used == previous.daily_ai_conversations_used,
        DBUser.last_conversation_reset == previous.last_conversation_reset,
    ).update(
        {
            DBUser.daily_ai_conversations_used: updated.daily_ai_conversations_used,
            DBUser.last_conversation_reset: updated.last_conversation_reset,
            DBUser.updated_at: now,
        },
        synchronize_session=False,
    )
    return rowcount == 1


def check_and_consume(session, user_id: str, now: Optional[datetime] = None) -> QuotaDecision:
    """
    判定并消耗一次配额。

    允许时写入（flush，不 commit），由调用方与业务数据在同一事务中提交；
    拒绝时不修改任何数据并抛出 QuotaExceeded。
    """
    now = now or datetime.now()
    attempts = _cas_retries()
    for attempt in range(1, attempts + 1):
        user = _load_user(session, user_id)
        # 重新读取，避免使用 identity map 中的旧值
        session.refresh(user)
        previous = UsageRecord.from_user(user)
        decision = decide(previous, now=now)

        if not decision.allowed:
            log_event(logger, E.AI_USAGE_EXCEED, level="warning", user_id=user_id,
                      used=previous.daily_ai_conversations_used, limit=decision.reason.limit)
            raise decision.reason
        if not decision.changed:
            return decision

        if _compare_and_set(session, user_id, previous, decision.record, now):
            session.flush()
            session.expire(user)
            event = E.AI_USAGE_RESET if decision.reset else E.AI_USAGE_CONSUME
            log_event(logger, event, user_id=user_id, used=decision.record.daily_ai_conversations_used,
                      limit=daily_limit(), attempt=attempt)
            return decision

        log_event(logger, E.AI_USAGE_CONFLICT, level="warning", user_id=user_id, attempt=attempt)
        session.expire(user)

    raise QuotaConflict()


def usage_snapshot(user, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.now()
    record = UsageRecord.from_user(user)
    limit = daily_limit()
    window = window_duration()
    expired = now - record.last_conversation_reset >= window
    used = 0 if expired else record.daily_ai_conversations_used
    resets_at = None if expired else record.last_conversation_reset + window
    return {
        "is_premium": record.is_premium,
        "limit": limit,
        "used": used,
        "remaining": limit if record.is_premium else max(0, limit - used),
        "window_hours": int(window.total_seconds() // 3600),
        "resets_at": resets_at.isoformat() if resets_at else None,
    }
