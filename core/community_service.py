import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from core.errors import PostNotFound
from core.events import log_event, E
from core.log import get_logger
from core.models.community_post import CommunityPost, PostComment, PostLike

logger = get_logger(__name__)


def _page(limit: int, offset: int):
    return max(1, min(int(limit or 20), 100)), max(0, int(offset or 0))


def post_to_dict(post: CommunityPost, liked: bool = False) -> Dict:
    return {
        "id": post.id,
        "user_id": post.user_id,
        "content_type": post.content_type,
        "content_id": post.content_id,
        "caption": post.caption,
        "likes_count": int(post.likes_count or 0),
        "comments_count": int(post.comments_count or 0),
        "liked": bool(liked),
        "created_at": post.created_at.isoformat() if post.created_at else None,
    }


def comment_to_dict(comment: PostComment) -> Dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "content": comment.content,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


def get_post(session, post_id: str) -> CommunityPost:
    post = session.query(CommunityPost).filter(CommunityPost.id == str(post_id or "")).first()
    if not post:
        raise PostNotFound()
    return post


def list_feed(session, viewer_id: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[Dict]:
    limit, offset = _page(limit, offset)
    posts = session.query(CommunityPost).order_by(
        CommunityPost.created_at.desc()
    ).offset(offset).limit(limit).all()
    liked_ids = set()
    if viewer_id and posts:
        rows = session.query(PostLike.post_id).filter(
            PostLike.user_id == viewer_id,
            PostLike.post_id.in_([p.id for p in posts]),
        ).all()
        liked_ids = {r[0] for r in rows}
    return [post_to_dict(p, liked=p.id in liked_ids) for p in posts]


def create_post(session, user_id: str, content_type: str, content_id: str, caption: str = None) -> CommunityPost:
    post = CommunityPost(
        id=str(uuid.uuid4()),
        user_id=user_id,
        content_type=content_type,
        content_id=content_id,
        caption=caption,
        likes_count=0,
        comments_count=0,
        created_at=datetime.now(),
    )
    session.add(post)
    session.commit()
    session.refresh(post)
    log_event(logger, E.POST_CREATE, post_id=post.id, user_id=user_id, content_type=content_type)
    return post


def _bump_likes(session, post_id: str, delta: int) -> None:
    # 原子自增，避免读-改-写丢失更新
    session.query(CommunityPost).filter(CommunityPost.id == post_id).update(
        {CommunityPost.likes_count: CommunityPost.likes_count + delta},
        synchronize_session=False,
    )


def toggle_like(session, post_id: str, user_id: str) -> Dict:
    """切换点赞，返回服务端权威状态 {post_id, liked, likes_count}。"""
    get_post(session, post_id)
    existing = session.query(PostLike.id).filter(
        PostLike.post_id == post_id,
        PostLike.user_id == user_id,
    ).first()
    try:
        if existing:
            # 并发取消时只有真正删掉记录的请求才减计数
            deleted = session.query(PostLike).filter(
                PostLike.post_id == post_id,
                PostLike.user_id == user_id,
            ).delete(synchronize_session=False)
            if deleted == 1:
                _bump_likes(session, post_id, -1)
            liked = False
        else:
            session.add(PostLike(id=str(uuid.uuid4()), post_id=post_id, user_id=user_id, created_at=datetime.now()))
            session.flush()
            _bump_likes(session, post_id, 1)
            liked = True
        session.commit()
    except IntegrityError:
        # 同一用户并发点赞，唯一索引冲突：以数据库当前状态为准
        session.rollback()
        liked = True
    post = get_post(session, post_id)
    session.refresh(post)
    count = max(0, int(post.likes_count or 0))
    log_event(logger, E.POST_LIKE_TOGGLE, post_id=post_id, user_id=user_id, liked=liked, likes_count=count)
    return {"post_id": post_id, "liked": liked, "likes_count": count}


def list_comments(session, post_id: str, limit: int = 20, offset: int = 0) -> List[Dict]:
    get_post(session, post_id)
    limit, offset = _page(limit, offset)
    rows = session.query(PostComment).filter(
        PostComment.post_id == post_id,
    ).order_by(PostComment.created_at.asc()).offset(offset).limit(limit).all()
    return [comment_to_dict(x) for x in rows]


def create_comment(session, post_id: str, user_id: str, content: str) -> PostComment:
    get_post(session, post_id)
    comment = PostComment(
        id=str(uuid.uuid4()),
        post_id=post_id,
        user_id=user_id,
        content=content,
        created_at=datetime.now(),
    )
    session.add(comment)
    session.query(CommunityPost).filter(CommunityPost.id == post_id).update(
        {CommunityPost.comments_count: CommunityPost.comments_count + 1},
        synchronize_session=False,
    )
    session.commit()
    session.refresh(comment)
    log_event(logger, E.COMMENT_CREATE, comment_id=comment.id, post_id=post_id, user_id=user_id)
    return comment
