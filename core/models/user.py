from .base import Base, Column, String, Integer, DateTime, Boolean


class User(Base):
    __tablename__ = 'app_users'
    id = Column(String(255), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), default='')
    avatar_url = Column(String(500), default='')
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)

    # AI 配额（滚动 24 小时窗口）
    is_premium = Column(Boolean, default=False, nullable=False)
    daily_ai_conversations_used = Column(Integer, default=0, nullable=False)
    last_conversation_reset = Column(DateTime, nullable=False)

    created_at = Column(DateTime, index=True)
    updated_at = Column(DateTime)

    def verify_password(self, password: str) -> bool:
        """验证密码"""
        from core.auth import pwd_context
        return pwd_context.verify(password, self.password_hash)
