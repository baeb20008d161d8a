"""
Обработчик событий канала реального времени

Каждое событие соединения обрабатывается до конца (включая запрос к БД)
прежде, чем будет прочитано следующее. Push-уведомление отправляется
фоновой задачей и не задерживает рассылку и подтверждение.
"""
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import sessionmaker

from chat_relay.core import metrics
from chat_relay.core.errors import (
    Conflict,
    Duplicate,
    InvalidMessage,
    InvalidToken,
    NotFound,
    PushDeliveryFailure,
    RelayError,
    StorageFailure,
    Unauthorized,
)
from chat_relay.core.logging import get_logger
from chat_relay.core.performance import AsyncPerformanceTracker
from chat_relay.core.push import ExpoPushClient, is_expo_push_token
from chat_relay.core.tasks import TaskQueue
from chat_relay.db.models.message import ChatMessage, utc_now
from chat_relay.db.repositories.message import MessageRepository
from chat_relay.schemas.events import (
    DeleteMessageEvent,
    JoinEvent,
    MarkSeenEvent,
    ReactionEvent,
    RegisterPushTokenEvent,
)
from chat_relay.schemas.message import MessageIn, MessageOut, format_timestamp, to_naive_utc
from chat_relay.services.conversation import is_participant, resolve_receiver
from chat_relay.services.presence import PresenceTable
from chat_relay.services.push_registry import PushTokenRegistry
from chat_relay.utils.websocket_manager import ConnectionManager

# Получение логгера
logger = get_logger("relay")


class RelayHandler:
    """Обработка входящих событий и рассылка исходящих"""

    def __init__(
        self,
        session_factory: sessionmaker,
        connections: ConnectionManager,
        presence: PresenceTable,
        registry: PushTokenRegistry,
        push_client: ExpoPushClient,
        task_queue: TaskQueue,
    ):
        self.session_factory = session_factory
        self.connections = connections
        self.presence = presence
        self.registry = registry
        self.push_client = push_client
        self.task_queue = task_queue

        self._handlers: Dict[str, Callable[[str, Any], Awaitable[None]]] = {
            "join": self.on_join,
            "message": self.on_message,
            "delete-message": self.on_delete_message,
            "register-push-token": self.on_register_push_token,
            "message-reaction": self.on_reaction,
            "mark-seen": self.on_mark_seen,
        }

    async def handle(self, connection_id: str, event: str, data: Any) -> None:
        """
        Обработка одного события соединения

        Ошибки отправляются только этому соединению в виде события error;
        соединение при этом не закрывается.

        Args:
            connection_id: Идентификатор соединения
            event: Имя события
            data: Полезная нагрузка
        """
        handler = self._handlers.get(event)
        if handler is None:
            # Имя события задает клиент: неизвестные имена не становятся метками метрик
            metrics.track_ws_event("incoming", "unknown")
            logger.warning(f"Неизвестное событие {event} от соединения {connection_id}")
            await self._send_error(connection_id, "Unknown event", details=event)
            return

        metrics.track_ws_event("incoming", event)

        try:
            await handler(connection_id, data)
        except StorageFailure as e:
            logger.error(f"Ошибка хранилища при обработке {event} от {connection_id}: {e.message}")
            await self._send_error(connection_id, e.message)
        except RelayError as e:
            logger.info(f"Событие {event} от {connection_id} отклонено: {e.message}")
            await self._send_error(connection_id, e.message, details=e.details)
        except Exception as e:
            logger.error(f"Ошибка при обработке события {event} от {connection_id}: {str(e)}", exc_info=True)
            await self._send_error(connection_id, "Внутренняя ошибка сервера")

    async def on_join(self, connection_id: str, data: Any) -> None:
        """Регистрация присутствия и доставка ожидающих сообщений"""
        payload = self._parse(JoinEvent, data)
        if not payload.user_id:
            raise InvalidMessage("userId is required")

        user_id = payload.user_id
        # Соединение могло ранее представляться другим пользователем
        previous_user = self.presence.user_for(connection_id)
        if previous_user and previous_user != user_id:
            self.presence.remove(previous_user, connection_id)
        self.presence.set(user_id, connection_id)
        logger.info(f"join: {user_id} ({payload.name or 'без имени'}) на соединении {connection_id}")

        async with AsyncPerformanceTracker(f"Ожидающие сообщения для {user_id}"):
            async with self.session_factory() as session:
                pending = await MessageRepository(session).find_active_for_receiver(user_id)
                items = [MessageOut.from_model(message).to_payload() for message in pending]

        if items:
            logger.info(f"Доставка {len(items)} ожидающих сообщений пользователю {user_id}")
            await self.connections.send_personal_message(connection_id, "pending-messages", items)

    async def on_message(self, connection_id: str, data: Any) -> None:
        """Сохранение, рассылка и подтверждение нового сообщения"""
        message_in = self._parse(MessageIn, data)
        if not message_in.id or not message_in.sender_id:
            raise InvalidMessage("Message requires _id and user._id")

        saved_at = utc_now()
        try:
            saved = await self._persist(message_in, saved_at)
        except Duplicate as e:
            metrics.track_message_persisted("duplicate")
            logger.info(e.message)
            await self.connections.send_personal_message(connection_id, "message-delivered", {
                "messageId": message_in.id,
                "status": "duplicate",
            })
            return
        except StorageFailure:
            metrics.track_message_persisted("failed")
            raise

        payload = MessageOut.from_model(saved).to_payload()
        metrics.track_message_persisted("delivered")
        logger.info(f"Сообщение {saved.id} от {saved.sender_id} для {saved.receiver_id} сохранено")

        await self.connections.broadcast("message", payload, message=saved)
        await self.connections.send_personal_message(connection_id, "message-delivered", {
            "messageId": saved.id,
            "status": "delivered",
            "savedAt": format_timestamp(saved_at),
        })

        self.task_queue.add_task(
            self.send_push,
            saved.id,
            saved.receiver_id,
            f"New message from {saved.sender_name or 'Someone'}",
            saved.text or "(Media)",
            description=f"push для сообщения {saved.id}",
        )

    async def delete_message(self, message_id: Optional[str], user_id: Optional[str]) -> Tuple[ChatMessage, bool]:
        """
        Мягкое удаление сообщения участником переписки

        Права проверяются до изменения записи, поэтому попытка постороннего
        пользователя не меняет сообщение даже на время. Если после удаления
        запись перестала относиться к пользователю, его удаление откатывается.

        Args:
            message_id: ID сообщения
            user_id: Кто удаляет

        Returns:
            Кортеж (сообщение, было ли удаление применено этим вызовом)

        Raises:
            InvalidMessage: Не указан messageId или userId
            NotFound: Сообщение не найдено
            Unauthorized: Пользователь не участвует в переписке
        """
        if not message_id or not user_id:
            raise InvalidMessage("messageId and userId are required")

        async with self.session_factory() as session:
            repo = MessageRepository(session)
            existing = await repo.find_by_id(message_id)
            if existing is None:
                raise NotFound(f"Сообщение {message_id} не найдено")
            if not is_participant(existing, user_id):
                logger.warning(f"Пользователь {user_id} не может удалить сообщение {message_id}")
                raise Unauthorized("Unauthorized")

            message, applied = await repo.soft_delete(message_id, user_id)

            if applied and not is_participant(message, user_id):
                await repo.revert_delete(message_id, user_id)
                logger.warning(f"Удаление сообщения {message_id} пользователем {user_id} отменено")
                raise Unauthorized("Unauthorized")

        if applied:
            await self.connections.broadcast("message-deleted", {
                "messageId": message.id,
                "deletedAt": format_timestamp(message.deleted_at),
                "deletedBy": message.deleted_by,
            }, message=message)
        else:
            logger.info(f"Сообщение {message_id} уже удалено, повторная рассылка не нужна")
        return message, applied

    async def on_delete_message(self, connection_id: str, data: Any) -> None:
        payload = self._parse(DeleteMessageEvent, data)
        try:
            message, _ = await self.delete_message(payload.message_id, payload.user_id)
        except (InvalidMessage, NotFound, Unauthorized) as e:
            await self.connections.send_personal_message(connection_id, "delete-error", {
                "messageId": payload.message_id,
                "error": e.message,
            })
            return

        await self.connections.send_personal_message(connection_id, "delete-success", {
            "messageId": message.id,
            "deletedAt": format_timestamp(message.deleted_at),
        })

    async def on_register_push_token(self, connection_id: str, data: Any) -> None:
        payload = self._parse(RegisterPushTokenEvent, data)
        try:
            async with self.session_factory() as session:
                await self.registry.register(session, payload.user_id, payload.expo_push_token)
        except (InvalidToken, StorageFailure) as e:
            await self.connections.send_personal_message(connection_id, "push-token-error", {"error": e.message})
            return

        await self.connections.send_personal_message(connection_id, "push-token-registered", {"success": True})

    async def on_reaction(self, connection_id: str, data: Any) -> None:
        """Замена реакции пользователя; пустой emoji снимает ее"""
        payload = self._parse(ReactionEvent, data)
        if not payload.message_id or not payload.user_id:
            raise InvalidMessage("messageId and userId are required")

        async with self.session_factory() as session:
            message = await MessageRepository(session).set_reaction(
                payload.message_id, payload.user_id, payload.emoji
            )
            updated = MessageOut.from_model(message).to_payload()

        await self.connections.broadcast("message-updated", updated, message=message)

    async def on_mark_seen(self, connection_id: str, data: Any) -> None:
        """Отметка о получении: сообщения уходят из очереди пользователя"""
        payload = self._parse(MarkSeenEvent, data)
        user_id = payload.user_id or self.presence.user_for(connection_id)
        if not user_id:
            raise InvalidMessage("userId is required")

        async with self.session_factory() as session:
            updated = await MessageRepository(session).mark_seen(payload.message_ids, user_id)

        if updated:
            await self.connections.broadcast("messages-seen", {"userId": user_id, "messageIds": updated})

    def on_disconnect(self, connection_id: str) -> None:
        """Снятие присутствия пользователя, если запись еще указывает на это соединение"""
        user_id = self.presence.user_for(connection_id)
        if user_id:
            self.presence.remove(user_id, connection_id)

    async def send_push(self, message_id: str, receiver_id: str, title: str, body: str) -> None:
        """
        Попытка отправить одно push-уведомление получателю

        Ошибки отправки и последующего сохранения отметки только логируются.
        """
        token = self.registry.lookup(receiver_id)
        if not token or not is_expo_push_token(token):
            metrics.track_push_notification("skipped")
            logger.debug(f"Нет push-токена для {receiver_id}, уведомление о {message_id} не отправлено")
            return

        try:
            await self.push_client.send(token, title, body, data={"messageId": message_id})
        except PushDeliveryFailure as e:
            metrics.track_push_notification("failed")
            logger.warning(f"Не удалось отправить push для сообщения {message_id}: {e.message}")
            return

        metrics.track_push_notification("sent")
        try:
            async with self.session_factory() as session:
                await MessageRepository(session).mark_push_sent(message_id)
        except StorageFailure as e:
            logger.error(f"Не удалось отметить отправку push для сообщения {message_id}: {e.message}")

    def _build_message(self, message_in: MessageIn, saved_at) -> ChatMessage:
        user = message_in.user
        message = ChatMessage(
            id=message_in.id,
            sender_id=user.id,
            sender_name=user.name,
            sender_avatar=user.avatar,
            receiver_id=message_in.receiver_id,
            text=message_in.text or "",
            image=message_in.image,
            file=message_in.file,
            location=message_in.location,
            link_preview=message_in.link_preview,
            reply_to=message_in.reply_to,
            type=message_in.type or "text",
            created_at=to_naive_utc(message_in.created_at) if message_in.created_at else saved_at,
            is_deleted=False,
        )
        message.receiver_id = resolve_receiver(message)
        return message

    async def _persist(self, message_in: MessageIn, saved_at) -> ChatMessage:
        """
        Сохранение нового сообщения с дедупликацией по id

        Raises:
            Duplicate: Сообщение с таким id уже сохранено
            StorageFailure: Ошибка хранилища
        """
        async with self.session_factory() as session:
            repo = MessageRepository(session)
            if await repo.find_by_id(message_in.id) is not None:
                raise Duplicate(f"Повторная отправка сообщения {message_in.id}")
            try:
                return await repo.insert(self._build_message(message_in, saved_at))
            except Conflict as e:
                raise Duplicate(f"Повторная отправка сообщения {message_in.id}") from e

    async def _send_error(self, connection_id: str, message: str, details: Any = None) -> None:
        data = {"message": message}
        if details is not None:
            data["details"] = details
        await self.connections.send_personal_message(connection_id, "error", data)

    @staticmethod
    def _parse(schema: Type[BaseModel], data: Any):
        try:
            return schema.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as e:
            raise InvalidMessage(
                "Invalid payload",
                details=e.errors(include_url=False, include_context=False, include_input=False),
            ) from e

