"""
Общие фикстуры для тестов

Этот модуль содержит общие фикстуры, которые могут использоваться во всех тестах проекта.
Фикстуры включают:
- Временную базу данных SQLite (aiosqlite) со схемой приложения
- Поддельные WebSocket-соединения
- Моки клиента Expo Push API
- Собранный обработчик событий релея
"""
import os

# Логи в файлы при тестах не пишем
os.environ.setdefault("LOG_TO_FILE", "false")

import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from chat_relay.core.push import ExpoPushClient
from chat_relay.core.tasks import TaskQueue
from chat_relay.db.database import create_session_factory, init_db
from chat_relay.services.presence import PresenceTable
from chat_relay.services.push_registry import PushTokenRegistry
from chat_relay.services.relay import RelayHandler
from chat_relay.utils.websocket_manager import ConnectionManager
from helpers import FakeWebSocket, iso

# Настройка логирования для тестов
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("tests")

# Временная база данных для каждого теста
@pytest.fixture
async def engine(tmp_path):
    """Создает файловую БД SQLite со схемой приложения"""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'relay.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    """Сессия БД для прямой работы с репозиториями"""
    async with session_factory() as session:
        yield session


# Мок клиента Expo Push API
@pytest.fixture
def mock_push_client():
    """Создает мок для ExpoPushClient с успешным ответом"""
    mock = AsyncMock(spec=ExpoPushClient)
    mock.send.return_value = {"status": "ok", "id": "ticket-1"}
    return mock


@pytest.fixture
async def relay(session_factory, mock_push_client):
    """Обработчик событий с собственными таблицами присутствия и токенов"""
    task_queue = TaskQueue()
    handler = RelayHandler(
        session_factory=session_factory,
        connections=ConnectionManager(),
        presence=PresenceTable(),
        registry=PushTokenRegistry(),
        push_client=mock_push_client,
        task_queue=task_queue,
    )
    yield handler
    await task_queue.stop()


@pytest.fixture
def connect(relay):
    """Открывает поддельное соединение с релеем"""
    async def _connect(fail: bool = False):
        websocket = FakeWebSocket(fail=fail)
        connection_id = await relay.connections.connect(websocket)
        return connection_id, websocket

    return _connect


@pytest.fixture
def base_time():
    return datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture
def minutes(base_time):
    """Время base_time + n минут в формате ISO для поля createdAt"""
    def _minutes(n: int) -> str:
        return iso(base_time + timedelta(minutes=n))

    return _minutes
