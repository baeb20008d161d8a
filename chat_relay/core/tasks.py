"""
Модуль для выполнения фоновых задач "запустил и забыл"
Реализует простой менеджер задач на основе asyncio
"""
import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from chat_relay.core.logging import get_logger

# Логгер для модуля задач
logger = get_logger("tasks")


class TaskStatus(str, Enum):
    """Статусы задач"""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskInfo:
    """Информация о задаче"""

    def __init__(
        self,
        task_id: str,
        func: Callable[..., Awaitable[Any]],
        args: tuple,
        kwargs: dict,
        timeout: Optional[float] = None,
        description: Optional[str] = None
    ):
        self.task_id = task_id
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self.timeout = timeout
        self.description = description or f"Task {func.__name__}"
        self.status = TaskStatus.PENDING
        self.error: Optional[str] = None
        self.created_at = datetime.now()
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None


class TaskQueue:
    """
    Менеджер фоновых задач

    Задача запускается сразу после добавления и не блокирует вызывающий код.
    Результат задачи никому не возвращается: ошибки только логируются.
    """

    def __init__(self, history_size: int = 1000):
        """
        Инициализация менеджера задач

        Args:
            history_size: Сколько завершенных задач хранить для статистики
        """
        # Выполняющиеся задачи по идентификаторам
        self._tasks: Dict[str, TaskInfo] = {}

        # Недавно завершенные задачи
        self._finished: List[TaskInfo] = []
        self._history_size = history_size

        # Счетчики по статусам завершения
        self._counters = {
            TaskStatus.COMPLETED: 0,
            TaskStatus.FAILED: 0,
            TaskStatus.CANCELLED: 0,
        }

        self._running = True

    def add_task(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        task_id: Optional[str] = None,
        timeout: Optional[float] = None,
        description: Optional[str] = None,
        **kwargs
    ) -> Optional[str]:
        """
        Запускает асинхронную функцию как фоновую задачу

        Args:
            func: Асинхронная функция для выполнения
            *args: Позиционные аргументы функции
            task_id: Идентификатор задачи (генерируется автоматически, если не указан)
            timeout: Таймаут выполнения в секундах
            description: Описание задачи для логирования
            **kwargs: Именованные аргументы функции

        Returns:
            Optional[str]: Идентификатор задачи или None, если менеджер остановлен
        """
        if not self._running:
            logger.warning(f"TaskQueue остановлен, задача {description or func.__name__} отклонена")
            return None

        if task_id is None:
            task_id = str(uuid.uuid4())

        task_info = TaskInfo(
            task_id=task_id,
            func=func,
            args=args,
            kwargs=kwargs,
            timeout=timeout,
            description=description
        )
        self._tasks[task_id] = task_info
        task_info._task = asyncio.create_task(self._execute_task(task_info), name=f"task_{task_id}")

        logger.debug(f"Добавлена задача {task_id} ({task_info.description})")
        return task_id

    async def _execute_task(self, task_info: TaskInfo) -> None:
        """
        Выполняет задачу

        Args:
            task_info: Информация о задаче
        """
        task_info.status = TaskStatus.RUNNING
        task_info.started_at = datetime.now()

        try:
            coro = task_info.func(*task_info.args, **task_info.kwargs)
            if task_info.timeout:
                await asyncio.wait_for(coro, timeout=task_info.timeout)
            else:
                await coro

            task_info.status = TaskStatus.COMPLETED
            logger.debug(f"Задача {task_info.task_id} выполнена успешно")

        except asyncio.CancelledError:
            task_info.status = TaskStatus.CANCELLED
            logger.info(f"Задача {task_info.task_id} отменена")
            raise

        except asyncio.TimeoutError:
            task_info.status = TaskStatus.FAILED
            task_info.error = "Timeout exceeded"
            logger.warning(f"Задача {task_info.task_id} превысила таймаут {task_info.timeout} сек")

        except Exception as e:
            task_info.status = TaskStatus.FAILED
            task_info.error = str(e)
            logger.error(
                f"Ошибка при выполнении задачи {task_info.task_id} ({task_info.description}): {str(e)}",
                exc_info=True
            )

        finally:
            task_info.completed_at = datetime.now()
            self._finish(task_info)

    def _finish(self, task_info: TaskInfo) -> None:
        """Переносит задачу в историю завершенных"""
        self._tasks.pop(task_info.task_id, None)
        task_info._task = None
        if task_info.status in self._counters:
            self._counters[task_info.status] += 1
        self._finished.append(task_info)
        if len(self._finished) > self._history_size:
            del self._finished[: len(self._finished) - self._history_size]

    async def drain(self) -> None:
        """Ожидает завершения всех выполняющихся задач"""
        while self._tasks:
            pending = [info._task for info in self._tasks.values() if info._task]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)

    async def stop(self) -> None:
        """Останавливает менеджер и отменяет незавершенные задачи"""
        self._running = False

        pending = [info._task for info in self._tasks.values() if info._task]
        for task in pending:
            task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info(f"TaskQueue остановлен, отменено задач: {len(pending)}")

    def get_task_info(self, task_id: str) -> Optional[Dict[str, Any]]:
        """
        Получает информацию о задаче

        Args:
            task_id: Идентификатор задачи

        Returns:
            Optional[Dict]: Информация о задаче или None, если задача не найдена
        """
        task_info = self._tasks.get(task_id)
        if task_info is None:
            task_info = next((t for t in self._finished if t.task_id == task_id), None)
        if task_info is None:
            return None

        return {
            "task_id": task_info.task_id,
            "status": task_info.status,
            "description": task_info.description,
            "created_at": task_info.created_at.isoformat(),
            "started_at": task_info.started_at.isoformat() if task_info.started_at else None,
            "completed_at": task_info.completed_at.isoformat() if task_info.completed_at else None,
            "timeout": task_info.timeout,
            "error": task_info.error
        }

    def get_stats(self) -> Dict[str, Any]:
        """
        Получает статистику задач

        Returns:
            Dict: Статистика задач
        """
        return {
            "running": len(self._tasks),
            "completed": self._counters[TaskStatus.COMPLETED],
            "failed": self._counters[TaskStatus.FAILED],
            "cancelled": self._counters[TaskStatus.CANCELLED],
            "accepting": self._running,
        }
