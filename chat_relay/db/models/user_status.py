from sqlalchemy import Column, DateTime, String

from chat_relay.db.database import Base
from chat_relay.db.models.message import utc_now


class UserStatus(Base):
    """Регистрация push-токена пользователя"""
    __tablename__ = "user_status"

    user_id = Column(String(128), primary_key=True)
    expo_push_token = Column(String(255), nullable=True)
    last_seen = Column(DateTime, nullable=False, default=utc_now)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
