from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from chat_relay.core.config import settings
from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("database")

# Базовый класс для всех моделей
Base = declarative_base()


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    """Создание фабрики асинхронных сессий для движка"""
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


# Создание асинхронного движка SQLAlchemy (соединение открывается при первом запросе)
engine = create_async_engine(
    settings.DATABASE_URI,
    echo=settings.DATABASE_ECHO,
    pool_pre_ping=True,
)

# Фабрика асинхронных сессий по умолчанию
AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """
    Инициализация базы данных при запуске приложения:
    создание таблиц, если они не существуют
    """
    bind = bind or engine
    try:
        async with bind.begin() as conn:
            # Импорт моделей регистрирует таблицы в метаданных
            from chat_relay.db.models import ChatMessage, MessageReaction, MessageSeen, UserStatus  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Инициализация базы данных завершена")
    except Exception as e:
        logger.error(f"Ошибка при инициализации базы данных: {e}")
        raise


async def check_connection(bind: Optional[AsyncEngine] = None) -> bool:
    """Проверяет доступность базы данных"""
    bind = bind or engine
    try:
        async with bind.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"База данных недоступна: {e}")
        return False


# Зависимость FastAPI для получения сессии БД
async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = getattr(request.app.state, "session_factory", AsyncSessionLocal)
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()
