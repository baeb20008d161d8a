"""
Тесты для менеджера WebSocket-соединений
"""
import pytest

from chat_relay.utils.websocket_manager import ConnectionManager
from helpers import FakeWebSocket


@pytest.mark.asyncio
async def test_connect_accepts_and_assigns_id():
    manager = ConnectionManager()
    websocket = FakeWebSocket()

    connection_id = await manager.connect(websocket)

    assert websocket.accepted is True
    assert manager.active_connections[connection_id] is websocket
    assert manager.count() == 1


@pytest.mark.asyncio
async def test_send_personal_message():
    manager = ConnectionManager()
    first, second = FakeWebSocket(), FakeWebSocket()
    first_id = await manager.connect(first)
    await manager.connect(second)

    assert await manager.send_personal_message(first_id, "pending-messages", [1, 2]) is True

    assert first.sent == [{"event": "pending-messages", "data": [1, 2]}]
    assert second.sent == []
    assert await manager.send_personal_message("unknown", "error", {}) is False


@pytest.mark.asyncio
async def test_broadcast_reaches_all_and_drops_dead_connections():
    """Рассылка идет всем соединениям, упавшие соединения удаляются"""
    manager = ConnectionManager()
    alive = FakeWebSocket()
    dead = FakeWebSocket(fail=True)
    await manager.connect(alive)
    dead_id = await manager.connect(dead)

    delivered = await manager.broadcast("message", {"_id": "m1"})

    assert delivered == 1
    assert alive.sent == [{"event": "message", "data": {"_id": "m1"}}]
    assert dead_id not in manager.active_connections
    assert manager.count() == 1


@pytest.mark.asyncio
async def test_broadcast_without_connections():
    assert await ConnectionManager().broadcast("message", {}) == 0


@pytest.mark.asyncio
async def test_disconnect_is_idempotent():
    manager = ConnectionManager()
    connection_id = await manager.connect(FakeWebSocket())

    manager.disconnect(connection_id)
    manager.disconnect(connection_id)

    assert manager.count() == 0
    assert manager.broadcast_scope() == []
