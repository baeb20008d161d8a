"""
Маршруты REST API для чтения и удаления сообщений
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from chat_relay.api.dependencies import get_message_service, get_relay
from chat_relay.core.config import settings
from chat_relay.core.logging import get_logger
from chat_relay.core.performance import async_time_it
from chat_relay.schemas.message import MessageOut, MessagePage, format_timestamp
from chat_relay.services.message_service import MessageService
from chat_relay.services.relay import RelayHandler

# Создание маршрутизатора
router = APIRouter(prefix=f"{settings.API_PREFIX}/messages", tags=["messages"])

# Получение логгера
logger = get_logger("message_routes")


@router.get("", response_model=MessagePage)
@async_time_it
async def list_messages(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    service: MessageService = Depends(get_message_service)
):
    """
    Активные сообщения переписки

    Параметры:
    - limit: Размер страницы (1-500, по умолчанию 50)
    - offset: Смещение для пагинации
    - order: asc (старые первыми) или desc
    """
    return await service.get_page(limit=limit, offset=offset, order=order)


@router.get("/user/{user_id}", response_model=List[MessageOut])
async def get_user_messages(
    user_id: str,
    service: MessageService = Depends(get_message_service)
):
    """Активные сообщения, отправленные пользователем или адресованные ему"""
    return await service.get_user_messages(user_id)


@router.get("/pending/{user_id}", response_model=List[MessageOut])
async def get_pending_messages(
    user_id: str,
    service: MessageService = Depends(get_message_service)
):
    """Сообщения, которые пользователь еще не получил"""
    return await service.get_pending(user_id)


@router.get("/{message_id}", response_model=MessageOut)
async def get_message(
    message_id: str,
    include_deleted: bool = Query(False),
    service: MessageService = Depends(get_message_service)
):
    """Одно сообщение; удаленное отдается только с include_deleted=true"""
    return await service.get_message(message_id, include_deleted=include_deleted)


@router.delete("/{message_id}")
async def delete_message(
    message_id: str,
    user_id: str = Query(..., min_length=1),
    relay: RelayHandler = Depends(get_relay)
):
    """
    Мягкое удаление сообщения участником переписки

    Работает так же, как событие delete-message: при успешном удалении
    всем подключенным клиентам рассылается message-deleted.
    """
    logger.info(f"REST-запрос на удаление сообщения {message_id} от пользователя {user_id}")
    message, _ = await relay.delete_message(message_id, user_id)
    return {
        "messageId": message.id,
        "deletedAt": format_timestamp(message.deleted_at),
        "deletedBy": message.deleted_by,
    }
