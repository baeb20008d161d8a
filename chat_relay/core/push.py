import re
from typing import Any, Dict, Optional

import httpx

from chat_relay.core.config import settings
from chat_relay.core.errors import PushDeliveryFailure
from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("push")

# Токен устройства без обертки ExponentPushToken[...]
_DEVICE_ID_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


def is_expo_push_token(token: Any) -> bool:
    """Проверяет синтаксис токена Expo push-уведомлений."""
    if not isinstance(token, str):
        return False
    if (token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")) and token.endswith("]"):
        return True
    return bool(_DEVICE_ID_RE.match(token))


class ExpoPushClient:
    """Клиент для отправки уведомлений через Expo Push API."""

    def __init__(
        self,
        push_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.push_url = push_url or settings.EXPO_PUSH_URL
        self.timeout = timeout if timeout is not None else settings.PUSH_TIMEOUT_SECONDS
        self.headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        token = access_token if access_token is not None else settings.EXPO_ACCESS_TOKEN
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def send(
        self,
        to: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Отправка одного уведомления.

        Возвращает тикет Expo. Любая ошибка транспорта, HTTP-статус, отличный
        от 200, или тикет со статусом error приводят к PushDeliveryFailure.
        """
        payload = {
            "to": to,
            "title": title,
            "body": body,
            "sound": "default",
            "data": data or {},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.push_url, headers=self.headers, json=payload)
        except httpx.HTTPError as e:
            raise PushDeliveryFailure(f"Expo недоступен: {str(e)}") from e

        if response.status_code != 200:
            logger.error(f"Ошибка Expo Push API ({response.status_code}): {response.text}")
            raise PushDeliveryFailure(
                f"Expo вернул статус {response.status_code}",
                details=response.text,
            )

        result = response.json()
        ticket = result.get("data")
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        ticket = ticket or {}

        if ticket.get("status") == "error":
            raise PushDeliveryFailure(
                ticket.get("message", "Expo отклонил уведомление"),
                details=ticket.get("details"),
            )

        logger.info(f"Push-уведомление отправлено на {to}: {ticket}")
        return ticket
