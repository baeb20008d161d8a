"""
Иерархия ошибок релея и их обработчики для REST API
"""
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("errors")


class RelayError(Exception):
    """Базовая ошибка релея"""

    code = "relay_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidMessage(RelayError):
    """Некорректное сообщение: нет id или отправителя"""

    code = "invalid_message"


class Duplicate(RelayError):
    """Повторная отправка сообщения с уже известным id (не является сбоем)"""

    code = "duplicate"
    status_code = status.HTTP_200_OK


class Conflict(RelayError):
    """Запись с таким id уже есть в хранилище"""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class NotFound(RelayError):
    """Сообщение не найдено"""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Unauthorized(RelayError):
    """Удаление сообщения пользователем, не участвующим в переписке"""

    code = "unauthorized"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidToken(RelayError):
    """Некорректный адрес push-уведомлений"""

    code = "invalid_token"


class StorageFailure(RelayError):
    """Хранилище недоступно или вернуло ошибку"""

    code = "storage_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PushDeliveryFailure(RelayError):
    """Не удалось доставить push-уведомление"""

    code = "push_delivery_failure"
    status_code = status.HTTP_502_BAD_GATEWAY


def register_exception_handlers(app: FastAPI) -> None:
    """Регистрирует обработчики ошибок релея и необработанных исключений"""

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        logger.warning(f"{exc.code} при обработке {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Необработанное исключение: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Внутренняя ошибка сервера"}
        )
