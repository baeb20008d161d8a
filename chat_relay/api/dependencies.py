from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.tasks import TaskQueue
from chat_relay.db.database import get_db
from chat_relay.services.message_service import MessageService
from chat_relay.services.presence import PresenceTable
from chat_relay.services.relay import RelayHandler
from chat_relay.utils.websocket_manager import ConnectionManager


def get_relay(request: Request) -> RelayHandler:
    """Обработчик событий релея, созданный при запуске приложения"""
    return request.app.state.relay


def get_connections(request: Request) -> ConnectionManager:
    return request.app.state.connections


def get_presence(request: Request) -> PresenceTable:
    return request.app.state.presence


def get_task_queue(request: Request) -> TaskQueue:
    return request.app.state.task_queue


async def get_message_service(db: AsyncSession = Depends(get_db)) -> MessageService:
    """
    Сервис сообщений на сессии запроса

    Args:
        db: Сессия базы данных

    Returns:
        MessageService: Сервис чтения сообщений
    """
    return MessageService(db)
