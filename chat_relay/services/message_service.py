from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.errors import NotFound
from chat_relay.core.logging import get_logger
from chat_relay.db.repositories.message import MessageRepository
from chat_relay.schemas.message import MessageOut, MessagePage

# Получение логгера для этого модуля
logger = get_logger("message_service")


class MessageService:
    """Сервис чтения сообщений для REST API"""

    def __init__(self, db: AsyncSession):
        self.message_repo = MessageRepository(db)

    async def get_page(self, limit: int = 50, offset: int = 0, order: str = "asc") -> MessagePage:
        """
        Страница активных сообщений

        Args:
            limit: Размер страницы
            offset: Смещение
            order: asc или desc по времени создания

        Returns:
            Страница сообщений с общим количеством
        """
        messages = await self.message_repo.list_active(limit=limit, offset=offset, order=order)
        total = await self.message_repo.count_active()
        return MessagePage(
            items=[MessageOut.from_model(message) for message in messages],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def get_user_messages(self, user_id: str) -> List[MessageOut]:
        """Активные сообщения, отправленные пользователем или адресованные ему"""
        messages = await self.message_repo.list_for_user(user_id)
        return [MessageOut.from_model(message) for message in messages]

    async def get_pending(self, user_id: str) -> List[MessageOut]:
        """Очередь сообщений, еще не полученных пользователем"""
        messages = await self.message_repo.find_active_for_receiver(user_id)
        return [MessageOut.from_model(message) for message in messages]

    async def get_message(self, message_id: str, include_deleted: bool = False) -> MessageOut:
        """
        Одно сообщение по id

        Args:
            message_id: ID сообщения
            include_deleted: Отдавать ли удаленное сообщение

        Raises:
            NotFound: Сообщение не найдено (или удалено, если include_deleted=False)
        """
        message = await self.message_repo.find_by_id(message_id, include_deleted=include_deleted)
        if message is None:
            logger.info(f"Сообщение {message_id} не найдено")
            raise NotFound("Сообщение не найдено")
        return MessageOut.from_model(message)
