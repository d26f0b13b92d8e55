from .base import Base, Column, String, DateTime, JSON


class Conversation(Base):
    __tablename__ = 'conversations'
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), index=True, nullable=False)
    character_id = Column(String(255), index=True, nullable=False)
    story_id = Column(String(255), index=True, nullable=True)
    title = Column(String(300), nullable=False)
    messages = Column(JSON, nullable=False, default=list)  # [{role, content}]
    created_at = Column(DateTime, index=True)
    updated_at = Column(DateTime)
