# Импорт всех моделей для удобного доступа
from chat_relay.db.models.message import ChatMessage, MessageReaction, MessageSeen, utc_now
from chat_relay.db.models.user_status import UserStatus

# Экспорт моделей для использования из других модулей
__all__ = [
    "ChatMessage",
    "MessageReaction",
    "MessageSeen",
    "UserStatus",
    "utc_now"
]
