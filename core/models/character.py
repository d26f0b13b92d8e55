from .base import Base, Column, String, Integer, DateTime, Boolean, Text


class Character(Base):
    __tablename__ = 'characters'
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), index=True, nullable=False)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=False)
    personality = Column(Text, nullable=False)
    backstory = Column(Text, nullable=False)
    avatar_url = Column(String(500), nullable=True)
    style = Column(String(64), index=True, nullable=False)
    is_public = Column(Boolean, default=False, index=True)
    likes_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, index=True)
