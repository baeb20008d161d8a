"""
Маршруты для мониторинга состояния приложения
"""
from fastapi import APIRouter, Depends

from chat_relay.api.dependencies import get_connections, get_presence, get_task_queue
from chat_relay.core.config import settings
from chat_relay.core.logging import get_logger
from chat_relay.core.monitoring import get_resources
from chat_relay.core.performance import async_time_it
from chat_relay.core.tasks import TaskQueue
from chat_relay.services.presence import PresenceTable
from chat_relay.utils.websocket_manager import ConnectionManager

# Создание маршрутизатора
router = APIRouter(prefix=f"{settings.API_PREFIX}/monitoring", tags=["monitoring"])

# Получение логгера
logger = get_logger("monitoring_routes")


@router.get(
    "/status",
    summary="Состояние релея",
    description="Возвращает число соединений, пользователей в сети, статистику фоновых задач и ресурсы процесса."
)
@async_time_it
async def relay_status(
    connections: ConnectionManager = Depends(get_connections),
    presence: PresenceTable = Depends(get_presence),
    task_queue: TaskQueue = Depends(get_task_queue)
):
    """Получение состояния релея"""
    return {
        "connections": connections.count(),
        "online_users": presence.users(),
        "tasks": task_queue.get_stats(),
        "resources": await get_resources(),
        "version": settings.PROJECT_VERSION,
        "environment": settings.ENVIRONMENT
    }
