from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.errors import Conflict, NotFound, StorageFailure
from chat_relay.core.logging import get_logger
from chat_relay.db.models.message import ChatMessage, MessageReaction, MessageSeen, utc_now
from chat_relay.db.repositories.base import BaseRepository

# Получение логгера
logger = get_logger("message_repository")


class MessageRepository(BaseRepository):
    """Репозиторий для работы с сообщениями чата"""

    def __init__(self, db: AsyncSession):
        """
        Инициализация репозитория сообщений

        Args:
            db: Сессия базы данных
        """
        super().__init__(db, ChatMessage)

    def _active(self):
        return select(ChatMessage).filter(ChatMessage.is_deleted.is_(False))

    async def insert(self, message: ChatMessage) -> ChatMessage:
        """
        Сохранение нового сообщения; seenBy при создании содержит только отправителя

        Args:
            message: Новое сообщение (id задан клиентом)

        Returns:
            Сохраненное сообщение

        Raises:
            Conflict: Сообщение с таким id уже существует
            StorageFailure: Ошибка хранилища
        """
        message.seen = [MessageSeen(user_id=message.sender_id)]

        logger.debug(f"Сохранение сообщения {message.id} от пользователя {message.sender_id}")
        self.db.add(message)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(f"Сообщение {message.id} уже сохранено параллельным запросом")
            raise Conflict(f"Сообщение {message.id} уже существует", details=str(e.orig)) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Ошибка SQL при сохранении сообщения {message.id}: {str(e)}", exc_info=True)
            raise StorageFailure("Ошибка при сохранении сообщения", details=str(e)) from e

        return await self.find_by_id(message.id)

    async def find_by_id(self, message_id: str, include_deleted: bool = True) -> Optional[ChatMessage]:
        """
        Получение сообщения по id

        Args:
            message_id: ID сообщения
            include_deleted: Возвращать ли удаленное сообщение

        Returns:
            Сообщение или None
        """
        message = await self.get_by_id(message_id)
        if message is not None and message.is_deleted and not include_deleted:
            return None
        return message

    async def find_active_for_receiver(self, user_id: str) -> List[ChatMessage]:
        """
        Очередь сообщений, ожидающих пользователя

        Активные сообщения, адресованные пользователю, которых нет в его seenBy,
        от старых к новым.

        Args:
            user_id: ID получателя

        Returns:
            Список ожидающих сообщений
        """
        logger.debug(f"Получение ожидающих сообщений для пользователя {user_id}")
        stmt = self._active().filter(
            ChatMessage.receiver_id == user_id,
            ~ChatMessage.seen.any(MessageSeen.user_id == user_id)
        ).order_by(
            ChatMessage.created_at.asc(),
            ChatMessage.id.asc()
        )
        result = await self._execute(stmt, "find_active_for_receiver")
        return list(result.scalars().all())

    async def list_active(self, limit: int = 50, offset: int = 0, order: str = "asc") -> List[ChatMessage]:
        """
        Получение активных сообщений с пагинацией

        Args:
            limit: Максимальное количество сообщений
            offset: Смещение для пагинации
            order: Порядок по времени создания: asc или desc

        Returns:
            Список сообщений
        """
        if order == "desc":
            ordering = (ChatMessage.created_at.desc(), ChatMessage.id.desc())
        else:
            ordering = (ChatMessage.created_at.asc(), ChatMessage.id.asc())

        logger.debug(f"Получение активных сообщений limit={limit}, offset={offset}, order={order}")
        stmt = self._active().order_by(*ordering).limit(limit).offset(offset)
        result = await self._execute(stmt, "list_active")
        return list(result.scalars().all())

    async def count_active(self) -> int:
        """Количество активных сообщений"""
        stmt = select(func.count()).select_from(ChatMessage).filter(ChatMessage.is_deleted.is_(False))
        result = await self._execute(stmt, "count_active")
        return result.scalar_one()

    async def list_for_user(self, user_id: str) -> List[ChatMessage]:
        """
        Активные сообщения, отправленные пользователем или адресованные ему

        Args:
            user_id: ID пользователя

        Returns:
            Список сообщений от старых к новым
        """
        stmt = self._active().filter(
            or_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == user_id)
        ).order_by(
            ChatMessage.created_at.asc(),
            ChatMessage.id.asc()
        )
        result = await self._execute(stmt, "list_for_user")
        return list(result.scalars().all())

    async def soft_delete(self, message_id: str, deleted_by: str) -> Tuple[ChatMessage, bool]:
        """
        Мягкое удаление сообщения

        Обновление условное: уже удаленное сообщение не меняется,
        поэтому повторный вызов сохраняет исходные deletedAt и deletedBy.

        Args:
            message_id: ID сообщения
            deleted_by: Кто удаляет

        Returns:
            Кортеж (сообщение, было ли удаление применено этим вызовом)

        Raises:
            NotFound: Сообщение не найдено
        """
        if await self.get_by_id(message_id) is None:
            raise NotFound(f"Сообщение {message_id} не найдено")

        stmt = update(ChatMessage).where(
            ChatMessage.id == message_id,
            ChatMessage.is_deleted.is_(False)
        ).values(
            is_deleted=True,
            deleted_at=utc_now(),
            deleted_by=deleted_by
        ).execution_options(synchronize_session=False)
        result = await self._execute(stmt, "soft_delete")
        await self._commit("soft_delete")

        applied = result.rowcount == 1
        if applied:
            logger.info(f"Сообщение {message_id} помечено удаленным пользователем {deleted_by}")
        return await self.get_by_id(message_id), applied

    async def revert_delete(self, message_id: str, deleted_by: str) -> Optional[ChatMessage]:
        """
        Отмена мягкого удаления, выполненного пользователем deleted_by

        Args:
            message_id: ID сообщения
            deleted_by: Пользователь, чье удаление отменяется

        Returns:
            Сообщение после отмены или None
        """
        stmt = update(ChatMessage).where(
            ChatMessage.id == message_id,
            ChatMessage.is_deleted.is_(True),
            ChatMessage.deleted_by == deleted_by
        ).values(
            is_deleted=False,
            deleted_at=None,
            deleted_by=None
        ).execution_options(synchronize_session=False)
        result = await self._execute(stmt, "revert_delete")
        await self._commit("revert_delete")

        if result.rowcount:
            logger.info(f"Удаление сообщения {message_id} пользователем {deleted_by} отменено")
        return await self.get_by_id(message_id)

    async def set_reaction(self, message_id: str, user_id: str, emoji: Optional[str]) -> ChatMessage:
        """
        Замена реакции пользователя на сообщение

        Args:
            message_id: ID сообщения
            user_id: ID пользователя
            emoji: Новая реакция; пустое значение снимает реакцию

        Returns:
            Обновленное сообщение

        Raises:
            NotFound: Сообщение не найдено или удалено
        """
        message = await self.find_by_id(message_id, include_deleted=False)
        if message is None:
            raise NotFound(f"Сообщение {message_id} не найдено")

        for reaction in list(message.reactions):
            if reaction.user_id == user_id:
                message.reactions.remove(reaction)
        # Старая реакция должна уйти из БД раньше вставки новой (уникальный ключ)
        await self._flush("set_reaction")

        if emoji:
            message.reactions.append(MessageReaction(user_id=user_id, emoji=emoji))
        await self._commit("set_reaction")

        logger.debug(f"Реакция пользователя {user_id} на сообщение {message_id}: {emoji or '-'}")
        return await self.get_by_id(message_id)

    async def mark_seen(self, message_ids: Iterable[str], user_id: str) -> List[str]:
        """
        Добавление пользователя в seenBy активных сообщений

        Args:
            message_ids: ID сообщений
            user_id: ID пользователя

        Returns:
            ID сообщений, которые действительно были обновлены
        """
        ids = list(dict.fromkeys(message_ids))
        if not ids:
            return []

        stmt = self._active().filter(ChatMessage.id.in_(ids))
        result = await self._execute(stmt, "mark_seen")
        messages = {message.id: message for message in result.scalars().all()}

        updated = []
        for message_id in ids:
            message = messages.get(message_id)
            if message is None or user_id in message.seen_by:
                continue
            message.seen.append(MessageSeen(user_id=user_id))
            updated.append(message_id)

        if updated:
            await self._commit("mark_seen")
            logger.debug(f"Пользователь {user_id} получил сообщения {updated}")
        return updated

    async def mark_push_sent(self, message_id: str) -> bool:
        """
        Отметка об отправленном push-уведомлении

        Args:
            message_id: ID сообщения

        Returns:
            True, если сообщение было обновлено
        """
        stmt = update(ChatMessage).where(
            ChatMessage.id == message_id
        ).values(
            push_notification_sent=True,
            push_sent_at=utc_now()
        ).execution_options(synchronize_session=False)
        result = await self._execute(stmt, "mark_push_sent")
        await self._commit("mark_push_sent")
        return result.rowcount == 1
