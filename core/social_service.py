import uuid
from datetime import datetime
from typing import Dict, List

from core.errors import InvalidRequest
from core.events import log_event, E
from core.log import get_logger
from core.models.follower import Follower

logger = get_logger(__name__)


def follower_to_dict(row: Follower) -> Dict:
    return {
        "id": row.id,
        "follower_id": row.follower_id,
        "following_id": row.following_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def toggle_follow(session, follower_id: str, following_id: str) -> Dict:
    if follower_id == following_id:
        raise InvalidRequest("Cannot follow yourself")
    existing = session.query(Follower).filter(
        Follower.follower_id == follower_id,
        Follower.following_id == following_id,
    ).first()
    if existing:
        session.delete(existing)
        following = False
    else:
        session.add(Follower(
            id=str(uuid.uuid4()),
            follower_id=follower_id,
            following_id=following_id,
            created_at=datetime.now(),
        ))
        following = True
    session.commit()
    log_event(logger, E.FOLLOW_TOGGLE, follower_id=follower_id, following_id=following_id, following=following)
    return {"success": True, "following": following}


def _page(limit: int, offset: int):
    return max(1, min(int(limit or 20), 100)), max(0, int(offset or 0))


def list_followers(session, user_id: str, limit: int = 20, offset: int = 0) -> List[Dict]:
    limit, offset = _page(limit, offset)
    rows = session.query(Follower).filter(Follower.following_id == user_id).order_by(
        Follower.created_at.desc()
    ).offset(offset).limit(limit).all()
    return [follower_to_dict(x) for x in rows]


def list_following(session, user_id: str, limit: int = 20, offset: int = 0) -> List[Dict]:
    limit, offset = _page(limit, offset)
    rows = session.query(Follower).filter(Follower.follower_id == user_id).order_by(
        Follower.created_at.desc()
    ).offset(offset).limit(limit).all()
    return [follower_to_dict(x) for x in rows]
