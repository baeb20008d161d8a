from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.logging import get_logger
from chat_relay.db.models.message import utc_now
from chat_relay.db.models.user_status import UserStatus
from chat_relay.db.repositories.base import BaseRepository

# Получение логгера
logger = get_logger("push_token_repository")


class PushTokenRepository(BaseRepository):
    """Репозиторий регистраций push-токенов"""

    def __init__(self, db: AsyncSession):
        """
        Инициализация репозитория push-токенов

        Args:
            db: Сессия базы данных
        """
        super().__init__(db, UserStatus)

    async def get(self, user_id: str) -> Optional[UserStatus]:
        """
        Получение регистрации пользователя

        Args:
            user_id: ID пользователя

        Returns:
            Регистрация или None
        """
        stmt = select(UserStatus).filter(UserStatus.user_id == user_id).execution_options(populate_existing=True)
        result = await self._execute(stmt, "get")
        return result.scalar_one_or_none()

    async def upsert(self, user_id: str, token: str) -> UserStatus:
        """
        Создание или обновление регистрации с lastSeen = сейчас

        Args:
            user_id: ID пользователя
            token: Токен Expo

        Returns:
            Сохраненная регистрация
        """
        now = utc_now()
        status = await self.get(user_id)
        if status is None:
            logger.debug(f"Новая регистрация push-токена для пользователя {user_id}")
            status = UserStatus(user_id=user_id, expo_push_token=token, last_seen=now, created_at=now, updated_at=now)
            self.db.add(status)
        else:
            status.expo_push_token = token
            status.last_seen = now
            status.updated_at = now

        await self._commit("upsert")
        return status

    async def list_all(self) -> Dict[str, str]:
        """Все сохраненные токены: user_id -> токен"""
        stmt = select(UserStatus).filter(UserStatus.expo_push_token.is_not(None))
        result = await self._execute(stmt, "list_all")
        return {status.user_id: status.expo_push_token for status in result.scalars().all()}
