"""
Фикстуры для интеграционных тестов приложения
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine

from chat_relay.core.config import settings
from chat_relay.db.database import create_session_factory
from chat_relay.main import create_app


@pytest.fixture
def app(tmp_path, mock_push_client, monkeypatch):
    """
    Приложение на временной БД SQLite

    Движок создается без подключения: таблицы создаются в lifespan,
    в цикле событий TestClient.
    """
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path / "uploads"))
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    return create_app(
        session_factory=create_session_factory(engine),
        engine=engine,
        push_client=mock_push_client,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def send_message(client):
    """Отправляет сообщение через WebSocket и ждет подтверждения"""
    def _send(payload):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"event": "message", "data": payload})
            frames = [websocket.receive_json(), websocket.receive_json()]
        return frames

    return _send
