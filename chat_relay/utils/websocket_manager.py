"""
Менеджер WebSocket-соединений канала реального времени
"""
import asyncio
import uuid
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from chat_relay.core import metrics
from chat_relay.core.logging import get_logger
from chat_relay.schemas.events import WsOutbound

# Получение логгера
logger = get_logger("websocket_manager")


class ConnectionManager:
    """
    Менеджер открытых WebSocket-соединений

    Каждому соединению выдается собственный идентификатор, по которому
    на него ссылается таблица присутствия.
    """

    def __init__(self):
        # connection_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """
        Принятие соединения

        Args:
            websocket: Новое соединение

        Returns:
            Идентификатор соединения
        """
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        metrics.update_connections(self.count())
        logger.info(f"Новое соединение {connection_id}, всего соединений: {self.count()}")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Удаление соединения из списка активных"""
        if self.active_connections.pop(connection_id, None) is not None:
            metrics.update_connections(self.count())
            logger.info(f"Соединение {connection_id} закрыто, всего соединений: {self.count()}")

    def count(self) -> int:
        return len(self.active_connections)

    async def send_personal_message(self, connection_id: str, event: str, data: Any = None) -> bool:
        """
        Отправка события одному соединению

        Args:
            connection_id: Идентификатор соединения
            event: Имя события
            data: Полезная нагрузка

        Returns:
            True, если событие отправлено
        """
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Соединение {connection_id} не найдено, событие {event} не отправлено")
            return False

        sent = await self._safe_send(websocket, WsOutbound(event=event, data=data).model_dump())
        if sent:
            metrics.track_ws_event("outgoing", event)
        else:
            self.disconnect(connection_id)
        return sent

    def broadcast_scope(self, message: Optional[Any] = None) -> List[str]:
        """
        Соединения, которым рассылается событие о сообщении

        Переписка одна, поэтому это все открытые соединения.
        """
        return list(self.active_connections.keys())

    async def broadcast(self, event: str, data: Any = None, message: Optional[Any] = None) -> int:
        """
        Параллельная рассылка события соединениям из broadcast_scope

        Соединения, отправка в которые не удалась, удаляются.

        Args:
            event: Имя события
            data: Полезная нагрузка
            message: Сообщение, к которому относится событие

        Returns:
            Количество соединений, получивших событие
        """
        connection_ids = [cid for cid in self.broadcast_scope(message) if cid in self.active_connections]
        if not connection_ids:
            return 0

        frame = WsOutbound(event=event, data=data).model_dump()
        results = await asyncio.gather(
            *[self._safe_send(self.active_connections[cid], frame) for cid in connection_ids],
            return_exceptions=True
        )

        delivered = 0
        for connection_id, success in zip(connection_ids, results):
            if success is True:
                delivered += 1
            else:
                self.disconnect(connection_id)

        metrics.track_ws_event("outgoing", event)
        logger.debug(f"Событие {event} разослано {delivered} из {len(connection_ids)} соединений")
        return delivered

    async def _safe_send(self, websocket: WebSocket, frame: dict) -> bool:
        try:
            await websocket.send_json(frame)
            return True
        except Exception as e:
            logger.debug(f"Не удалось отправить данные в соединение: {e}")
            return False
