"""
Схемы сообщений чата в формате, который ожидает мобильный клиент
"""
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer, field_validator


def format_timestamp(value: datetime) -> str:
    """ISO-8601 в UTC с суффиксом Z, как у Date.toISOString()"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


def to_naive_utc(value: datetime) -> datetime:
    """Приводит время к UTC без tzinfo для хранения в БД"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


Timestamp = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str, when_used="json")]


def _coerce_identifier(value: Any) -> Any:
    """Числовые идентификаторы от клиента приводятся к строке"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class MessageUser(BaseModel):
    """Отправитель сообщения"""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("_id", "id"),
        serialization_alias="_id",
    )
    name: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_identifier(v)


class MessageIn(BaseModel):
    """Входящее сообщение (событие message)"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(None, validation_alias=AliasChoices("_id", "id"))
    user: Optional[MessageUser] = None
    text: Optional[str] = None
    image: Optional[str] = None
    file: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    reply_to: Optional[str] = Field(None, validation_alias=AliasChoices("replyTo", "reply_to"))
    link_preview: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("linkPreview", "link_preview")
    )
    type: Optional[str] = None
    seen_by: Optional[List[str]] = Field(None, validation_alias=AliasChoices("seenBy", "seen_by"))
    receiver_id: Optional[str] = Field(None, validation_alias=AliasChoices("receiverId", "receiver_id"))
    created_at: Optional[datetime] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"))

    @field_validator("id", "receiver_id", "reply_to", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _coerce_identifier(v)

    @property
    def sender_id(self) -> Optional[str]:
        """Идентификатор отправителя, если он указан"""
        return self.user.id if self.user else None


class ReactionOut(BaseModel):
    """Реакция на сообщение"""

    user: str
    emoji: str


class MessageOut(BaseModel):
    """Сообщение в том виде, в котором оно отдается клиентам"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    text: str = ""
    user: MessageUser
    receiver_id: Optional[str] = Field(None, alias="receiverId")
    image: Optional[str] = None
    file: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    reply_to: Optional[str] = Field(None, alias="replyTo")
    link_preview: Optional[Dict[str, Any]] = Field(None, alias="linkPreview")
    type: str = "text"
    reactions: List[ReactionOut] = []
    seen_by: List[str] = Field(default_factory=list, alias="seenBy")
    created_at: Timestamp = Field(..., alias="createdAt")
    updated_at: Optional[Timestamp] = Field(None, alias="updatedAt")
    is_edited: bool = Field(False, alias="isEdited")
    is_deleted: bool = Field(False, alias="isDeleted")
    deleted_at: Optional[Timestamp] = Field(None, alias="deletedAt")
    deleted_by: Optional[str] = Field(None, alias="deletedBy")
    push_notification_sent: bool = Field(False, alias="pushNotificationSent")
    push_sent_at: Optional[Timestamp] = Field(None, alias="pushSentAt")

    @classmethod
    def from_model(cls, message) -> "MessageOut":
        """Создает схему из модели ChatMessage"""
        return cls(
            id=message.id,
            text=message.text or "",
            user=MessageUser(
                id=message.sender_id,
                name=message.sender_name,
                avatar=message.sender_avatar,
            ),
            receiver_id=message.receiver_id,
            image=message.image,
            file=message.file,
            location=message.location,
            reply_to=message.reply_to,
            link_preview=message.link_preview,
            type=message.type or "text",
            reactions=[ReactionOut(user=r.user_id, emoji=r.emoji) for r in message.reactions],
            seen_by=message.seen_by,
            created_at=message.created_at,
            updated_at=message.updated_at,
            is_edited=bool(message.is_edited),
            is_deleted=bool(message.is_deleted),
            deleted_at=message.deleted_at,
            deleted_by=message.deleted_by,
            push_notification_sent=bool(message.push_notification_sent),
            push_sent_at=message.push_sent_at,
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON-совместимый словарь с именами полей клиента"""
        return self.model_dump(by_alias=True, mode="json")


class MessagePage(BaseModel):
    """Страница активных сообщений"""

    items: List[MessageOut]
    total: int
    limit: int
    offset: int


class UploadedFile(BaseModel):
    """Результат загрузки файла"""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    filename: str
    size: int
    mime_type: Optional[str] = Field(None, alias="mimeType")
