from .base import Base, Column, String, Integer, DateTime, Boolean, Text, JSON


class Story(Base):
    __tablename__ = 'stories'
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), index=True, nullable=False)
    character_id = Column(String(255), index=True, nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=False)
    genre = Column(String(64), index=True, nullable=False)
    content = Column(JSON, nullable=False)
    is_public = Column(Boolean, default=False, index=True)
    is_private = Column(Boolean, default=False)
    likes_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, index=True)
