"""
Модуль для сбора и экспорта метрик приложения

Этот модуль предоставляет метрики HTTP-запросов, WebSocket-соединений,
событий релея и попыток отправки push-уведомлений.
"""
import time

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from chat_relay.core.logging import get_logger

# Настройка логирования
logger = get_logger("metrics")

# Создаем реестр метрик
registry = CollectorRegistry()

# Метрики HTTP запросов
http_requests_total = Counter(
    'http_requests_total',
    'Общее количество HTTP запросов',
    ['method', 'endpoint', 'status'],
    registry=registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'Длительность HTTP запросов в секундах',
    ['method', 'endpoint'],
    buckets=(0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float('inf')),
    registry=registry
)

# Метрики WebSocket
ws_connections_active = Gauge(
    'ws_connections_active',
    'Количество активных WebSocket соединений',
    registry=registry
)

ws_events_total = Counter(
    'ws_events_total',
    'Общее количество событий релея',
    ['direction', 'event'],
    registry=registry
)

# Бизнес-метрики
messages_persisted_total = Counter(
    'messages_persisted_total',
    'Количество сохраненных сообщений по результату',
    ['status'],
    registry=registry
)

push_notifications_total = Counter(
    'push_notifications_total',
    'Попытки отправки push-уведомлений по результату',
    ['status'],
    registry=registry
)

online_users_gauge = Gauge(
    'online_users',
    'Количество пользователей, присоединившихся к релею',
    registry=registry
)


def _normalize_path(path: str) -> str:
    """Заменяет идентификаторы в пути на {id} для группировки метрик"""
    parts = path.split('/')
    if len(parts) > 3 and parts[1] == 'api' and parts[2] == 'messages':
        for i in range(3, len(parts)):
            if parts[i] not in ('user', 'pending'):
                parts[i] = '{id}'
    return '/'.join(parts)


async def metrics_middleware(request: Request, call_next) -> Response:
    """
    Middleware для сбора метрик HTTP запросов

    Args:
        request: Объект запроса FastAPI
        call_next: Следующая функция в цепочке middleware

    Returns:
        Response: Ответ FastAPI
    """
    start_time = time.time()
    path = _normalize_path(request.url.path)

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Ошибка при обработке запроса: {str(e)}")
        http_requests_total.labels(method=request.method, endpoint=path, status=500).inc()
        http_request_duration_seconds.labels(
            method=request.method, endpoint=path
        ).observe(time.time() - start_time)
        raise

    http_requests_total.labels(
        method=request.method,
        endpoint=path,
        status=response.status_code
    ).inc()
    http_request_duration_seconds.labels(
        method=request.method,
        endpoint=path
    ).observe(time.time() - start_time)
    return response


def setup_metrics(app: FastAPI, metrics_path: str = "/metrics") -> None:
    """
    Подключает сбор метрик и эндпоинт экспорта Prometheus

    Args:
        app: Приложение FastAPI
        metrics_path: Путь эндпоинта метрик
    """
    app.middleware("http")(metrics_middleware)

    @app.get(metrics_path, include_in_schema=False)
    async def metrics() -> Response:
        return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


def track_ws_event(direction: str, event: str) -> None:
    """
    Отслеживание событий релея

    Args:
        direction: Направление (incoming/outgoing)
        event: Имя события (join, message, delete-message, ...)
    """
    ws_events_total.labels(direction=direction, event=event).inc()


def track_message_persisted(status: str) -> None:
    """Отслеживание результата сохранения сообщения (delivered/duplicate/failed)"""
    messages_persisted_total.labels(status=status).inc()


def track_push_notification(status: str) -> None:
    """Отслеживание результата отправки push-уведомления (sent/failed/skipped)"""
    push_notifications_total.labels(status=status).inc()


def update_connections(count: int) -> None:
    """Обновление количества активных соединений"""
    ws_connections_active.set(count)


def update_online_users(count: int) -> None:
    """Обновление количества присоединившихся пользователей"""
    online_users_gauge.set(count)
