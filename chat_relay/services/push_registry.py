"""
Реестр push-токенов: хранилище и его копия в памяти
"""
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.errors import InvalidToken
from chat_relay.core.logging import get_logger
from chat_relay.core.push import is_expo_push_token
from chat_relay.db.repositories.push_token import PushTokenRepository

# Получение логгера
logger = get_logger("push_registry")


class PushTokenRegistry:
    """Соответствие user_id -> токен Expo"""

    def __init__(self):
        self._tokens: Dict[str, str] = {}

    async def register(self, session: AsyncSession, user_id: Optional[str], token: Optional[str]) -> None:
        """
        Регистрация токена пользователя

        Сначала сохраняется запись в БД, затем обновляется копия в памяти.

        Args:
            session: Сессия базы данных
            user_id: ID пользователя
            token: Токен Expo

        Raises:
            InvalidToken: Нет пользователя или токен некорректен
            StorageFailure: Ошибка хранилища
        """
        if not user_id:
            raise InvalidToken("Не указан пользователь")
        if not is_expo_push_token(token):
            logger.warning(f"Некорректный push-токен от пользователя {user_id}: {token}")
            raise InvalidToken("Invalid push token")

        await PushTokenRepository(session).upsert(user_id, token)
        self._tokens[user_id] = token
        logger.info(f"Push-токен зарегистрирован для пользователя {user_id}")

    def lookup(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        return self._tokens.get(user_id)

    async def load(self, session: AsyncSession) -> int:
        """
        Заполнение копии в памяти из хранилища при запуске

        Returns:
            Количество загруженных токенов
        """
        tokens = await PushTokenRepository(session).list_all()
        self._tokens.update(tokens)
        logger.info(f"Загружено push-токенов: {len(tokens)}")
        return len(tokens)
