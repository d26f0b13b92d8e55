from .base import Base, Column, String, Integer, DateTime, Text, UniqueConstraint


class CommunityPost(Base):
    __tablename__ = 'community_posts'
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), index=True, nullable=False)
    content_type = Column(String(32), index=True, nullable=False)  # character/story
    content_id = Column(String(255), nullable=False)
    caption = Column(Text, nullable=True)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, index=True)


class PostComment(Base):
    __tablename__ = 'post_comments'
    id = Column(String(255), primary_key=True)
    post_id = Column(String(255), index=True, nullable=False)
    user_id = Column(String(255), index=True, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, index=True)


class PostLike(Base):
    __tablename__ = 'post_likes'
    __table_args__ = (UniqueConstraint('post_id', 'user_id', name='post_likes_unique_idx'),)
    id = Column(String(255), primary_key=True)
    post_id = Column(String(255), index=True, nullable=False)
    user_id = Column(String(255), index=True, nullable=False)
    created_at = Column(DateTime)
