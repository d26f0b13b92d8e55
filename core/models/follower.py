from .base import Base, Column, String, DateTime, UniqueConstraint


class Follower(Base):
    __tablename__ = 'followers'
    __table_args__ = (UniqueConstraint('follower_id', 'following_id', name='followers_unique_idx'),)
    id = Column(String(255), primary_key=True)
    follower_id = Column(String(255), index=True, nullable=False)
    following_id = Column(String(255), index=True, nullable=False)
    created_at = Column(DateTime)
