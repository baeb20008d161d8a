"""
Схемы событий канала реального времени
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WsInbound(BaseModel):
    """Клиент -> сервер"""

    event: str
    data: Any = None


class WsOutbound(BaseModel):
    """Сервер -> клиент"""

    event: str
    data: Any = None


class EventPayload(BaseModel):
    """Базовая схема полезной нагрузки события: поля клиента в camelCase"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )


class JoinEvent(EventPayload):
    """Событие join"""

    user_id: Optional[str] = None
    name: Optional[str] = None


class DeleteMessageEvent(EventPayload):
    """Событие delete-message"""

    message_id: Optional[str] = None
    user_id: Optional[str] = None


class RegisterPushTokenEvent(EventPayload):
    """Событие register-push-token"""

    user_id: Optional[str] = None
    expo_push_token: Optional[str] = None


class ReactionEvent(EventPayload):
    """Событие message-reaction; пустой emoji снимает реакцию"""

    message_id: Optional[str] = None
    user_id: Optional[str] = None
    emoji: Optional[str] = None


class MarkSeenEvent(EventPayload):
    """Событие mark-seen"""

    user_id: Optional[str] = None
    message_ids: List[str] = Field(default_factory=list)

