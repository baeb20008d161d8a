"""
Ограничение частоты запросов к REST API по IP-адресу клиента
"""
import math
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("rate_limit")


class RateLimiter:
    """Скользящее окно запросов для каждого ключа (обычно IP-адреса)"""

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> Optional[int]:
        """
        Регистрирует запрос

        Returns:
            None, если запрос разрешен, иначе число секунд до освобождения окна
        """
        now = self._clock()
        start = now - self.window_seconds
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(start)
            self._last_sweep = now

        bucket = self._buckets.setdefault(key, deque())
        while bucket and bucket[0] <= start:
            bucket.popleft()

        if len(bucket) >= self.limit:
            return max(1, math.ceil(self.window_seconds - (now - bucket[0])))

        bucket.append(now)
        return None

    def _sweep(self, start: float) -> None:
        """Удаляет ключи, у которых в окне не осталось запросов"""
        stale = [key for key, bucket in self._buckets.items() if not bucket or bucket[-1] <= start]
        for key in stale:
            del self._buckets[key]

    def tracked_keys(self) -> int:
        return len(self._buckets)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware, ограничивающее число запросов с одного IP к путям с заданным префиксом"""

    def __init__(self, app, limit: int, window_seconds: int, path_prefix: str = "/api/"):
        super().__init__(app)
        self.path_prefix = path_prefix
        self.limiter = RateLimiter(limit, window_seconds)

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        retry_after = self.limiter.hit(client_ip)
        if retry_after is not None:
            logger.warning(f"Превышен лимит запросов для {client_ip} на {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers={"Retry-After": str(retry_after)},
                content={"detail": "Слишком много запросов, попробуйте позже"}
            )

        return await call_next(request)
