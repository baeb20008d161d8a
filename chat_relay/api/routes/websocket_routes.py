"""
WebSocket-эндпоинт канала реального времени
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from chat_relay.core.logging import get_logger
from chat_relay.schemas.events import WsInbound

# Создание маршрутизатора
router = APIRouter(tags=["realtime"])

# Получение логгера
logger = get_logger("websocket_routes")


@router.websocket("/ws")
async def relay_endpoint(websocket: WebSocket):
    """
    Соединение клиента: кадры {"event": ..., "data": ...} в обе стороны

    События одного соединения обрабатываются строго по очереди.
    """
    state = websocket.app.state
    connections = state.connections
    relay = state.relay

    connection_id = await connections.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = WsInbound.model_validate_json(raw)
            except ValidationError:
                logger.warning(f"Некорректный кадр от соединения {connection_id}")
                await connections.send_personal_message(connection_id, "error", {"message": "Invalid frame"})
                continue

            await relay.handle(connection_id, frame.event, frame.data)

    except WebSocketDisconnect as e:
        logger.info(f"Клиент {connection_id} отключился (код {e.code})")
    finally:
        connections.disconnect(connection_id)
        relay.on_disconnect(connection_id)
