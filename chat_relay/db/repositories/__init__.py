# Импорт всех репозиториев для удобного доступа
from chat_relay.db.repositories.base import BaseRepository
from chat_relay.db.repositories.message import MessageRepository
from chat_relay.db.repositories.push_token import PushTokenRepository

# Экспорт репозиториев для использования из других модулей
__all__ = [
    "BaseRepository",
    "MessageRepository",
    "PushTokenRepository"
]
