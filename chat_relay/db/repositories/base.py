from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.errors import StorageFailure
from chat_relay.core.logging import get_logger

# Создаем типизированную переменную для моделей
T = TypeVar('T')

# Получение логгера
logger = get_logger("base_repository")


class BaseRepository(Generic[T]):
    """Базовый репозиторий с общими методами для всех моделей"""

    def __init__(self, db: AsyncSession, model: Type[T]):
        """
        Инициализация репозитория

        Args:
            db: Сессия базы данных
            model: Класс модели, с которой работает репозиторий
        """
        self.db = db
        self.model = model

    async def get_by_id(self, id: Any) -> Optional[T]:
        """
        Получение объекта по его ID

        Args:
            id: Идентификатор объекта

        Returns:
            Найденный объект или None, если объект не найден
        """
        stmt = select(self.model).filter(self.model.id == id).execution_options(populate_existing=True)
        result = await self._execute(stmt, "get_by_id")
        return result.scalar_one_or_none()

    async def _execute(self, stmt, operation: str):
        """
        Выполнение запроса с переводом ошибок SQLAlchemy в StorageFailure

        Args:
            stmt: Запрос SQLAlchemy
            operation: Название операции для логирования
        """
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Ошибка SQL при выполнении {operation} ({self.model.__name__}): {str(e)}", exc_info=True)
            raise StorageFailure("Ошибка при обращении к хранилищу", details=str(e)) from e

    async def _commit(self, operation: str) -> None:
        """
        Фиксация транзакции с откатом при ошибке

        Args:
            operation: Название операции для логирования
        """
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Ошибка SQL при фиксации {operation} ({self.model.__name__}): {str(e)}", exc_info=True)
            raise StorageFailure("Ошибка при сохранении в хранилище", details=str(e)) from e

    async def _flush(self, operation: str) -> None:
        """Промежуточная отправка изменений в БД без фиксации транзакции"""
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Ошибка SQL при выполнении {operation} ({self.model.__name__}): {str(e)}", exc_info=True)
            raise StorageFailure("Ошибка при сохранении в хранилище", details=str(e)) from e
