from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from chat_relay.db.database import Base


def utc_now() -> datetime:
    """Текущее время в UTC без tzinfo (так время хранится в БД)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ChatMessage(Base):
    """Модель сообщения чата; id задает клиент и служит ключом дедупликации"""
    __tablename__ = "messages"

    id = Column(String(128), primary_key=True)

    # Отправитель
    sender_id = Column(String(128), nullable=False, index=True)
    sender_name = Column(String(255), nullable=True)
    sender_avatar = Column(String(1024), nullable=True)

    receiver_id = Column(String(128), nullable=True)

    # Содержимое сообщения
    text = Column(Text, nullable=False, default="")
    image = Column(String(1024), nullable=True)
    file = Column(String(1024), nullable=True)
    location = Column(JSON, nullable=True)
    link_preview = Column(JSON, nullable=True)
    reply_to = Column(String(128), nullable=True)
    type = Column(String(32), nullable=False, default="text")

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=True)
    is_edited = Column(Boolean, nullable=False, default=False)

    # Мягкое удаление
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(128), nullable=True)

    # Учет push-уведомлений
    push_notification_sent = Column(Boolean, nullable=False, default=False)
    push_sent_at = Column(DateTime, nullable=True)

    # Отношения
    reactions = relationship(
        "MessageReaction",
        back_populates="message",
        order_by="MessageReaction.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    seen = relationship(
        "MessageSeen",
        back_populates="message",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_messages_receiver_created", "receiver_id", "created_at"),
        Index("ix_messages_created_at", "created_at"),
    )

    @property
    def seen_by(self) -> list:
        """Пользователи, получившие сообщение"""
        return [row.user_id for row in self.seen]


class MessageSeen(Base):
    """Отметка о получении сообщения пользователем"""
    __tablename__ = "message_seen"

    message_id = Column(String(128), ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(128), primary_key=True)
    seen_at = Column(DateTime, nullable=False, default=utc_now)

    message = relationship("ChatMessage", back_populates="seen")


class MessageReaction(Base):
    """Реакция пользователя на сообщение (не более одной на пользователя)"""
    __tablename__ = "message_reactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(128), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False)
    emoji = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    message = relationship("ChatMessage", back_populates="reactions")

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_reactions_user"),
    )
