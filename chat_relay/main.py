"""
Основной модуль приложения - точка входа FastAPI
"""
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker

from chat_relay.api.routes import api_router
from chat_relay.core.config import settings
from chat_relay.core.errors import register_exception_handlers
from chat_relay.core.logging import RequestLoggingMiddleware, get_logger, setup_logging
from chat_relay.core.metrics import setup_metrics
from chat_relay.core.push import ExpoPushClient
from chat_relay.core.rate_limit import RateLimitMiddleware
from chat_relay.core.tasks import TaskQueue
from chat_relay.db.database import AsyncSessionLocal, check_connection, engine as default_engine, init_db
from chat_relay.services.presence import PresenceTable
from chat_relay.services.push_registry import PushTokenRegistry
from chat_relay.services.relay import RelayHandler
from chat_relay.utils.websocket_manager import ConnectionManager

# Настройка логирования
setup_logging(log_level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR if settings.LOG_TO_FILE else None)

# Получение логгера
logger = get_logger("main")


# Контекст запуска приложения
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Контекст жизненного цикла приложения
    Запускается при старте и остановке приложения
    """
    logger.info("Запуск приложения...")
    app.state.started_at = time.monotonic()

    # Инициализация базы данных
    await init_db(app.state.engine)
    logger.info("База данных инициализирована")

    # Загрузка сохраненных push-токенов в память
    async with app.state.session_factory() as session:
        await app.state.registry.load(session)

    yield

    # Остановка компонентов при завершении
    logger.info("Остановка приложения...")
    await app.state.task_queue.stop()
    logger.info("Фоновые задачи остановлены")


def create_app(
    session_factory: Optional[sessionmaker] = None,
    engine: Optional[AsyncEngine] = None,
    push_client: Optional[ExpoPushClient] = None,
) -> FastAPI:
    """
    Создание приложения FastAPI

    Args:
        session_factory: Фабрика сессий БД (по умолчанию из настроек)
        engine: Движок БД для создания таблиц и проверки соединения
        push_client: Клиент Expo Push API

    Returns:
        FastAPI: Настроенное приложение
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        version=settings.PROJECT_VERSION,
        lifespan=lifespan
    )

    # Состояние релея создается один раз на приложение
    app.state.engine = engine or default_engine
    app.state.session_factory = session_factory or AsyncSessionLocal
    app.state.started_at = time.monotonic()
    app.state.connections = ConnectionManager()
    app.state.presence = PresenceTable()
    app.state.registry = PushTokenRegistry()
    app.state.task_queue = TaskQueue()
    app.state.relay = RelayHandler(
        session_factory=app.state.session_factory,
        connections=app.state.connections,
        presence=app.state.presence,
        registry=app.state.registry,
        push_client=push_client or ExpoPushClient(),
        task_queue=app.state.task_queue,
    )

    # Настройка CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=not settings.allow_all_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Логирование запросов и ограничение частоты запросов к API
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.RATE_LIMIT_DEFAULT,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        path_prefix=f"{settings.API_PREFIX}/",
    )

    # Настройка сбора метрик Prometheus
    if settings.METRICS_ENABLED:
        setup_metrics(app, settings.METRICS_PATH)
        logger.info("Метрики Prometheus настроены")

    register_exception_handlers(app)

    # Включение маршрутов API
    app.include_router(api_router)

    @app.get("/", tags=["health"])
    async def root():
        return {"message": "Messaging API Online", "status": "running"}

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """Проверка работоспособности приложения и базы данных"""
        database_ok = await check_connection(request.app.state.engine)
        return {
            "status": "OK" if database_ok else "DB ISSUE",
            "database": database_ok,
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "environment": settings.ENVIRONMENT
        }

    # Пробуждение инстанса на бесплатном хостинге
    @app.get("/wakeup", tags=["health"], status_code=status.HTTP_204_NO_CONTENT)
    async def wakeup():
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


# Создание приложения FastAPI
app = create_app()


# Запуск приложения с uvicorn при прямом запуске модуля
if __name__ == "__main__":
    uvicorn.run(
        "chat_relay.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.ENVIRONMENT.lower() == "development"
    )
