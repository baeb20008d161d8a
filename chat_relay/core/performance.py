"""
Утилиты для измерения времени выполнения обработчиков
"""
import functools
import time
from typing import Any, Callable, TypeVar

from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("performance")

AsyncF = TypeVar('AsyncF', bound=Callable[..., Any])


def async_time_it(func: AsyncF) -> AsyncF:
    """
    Декоратор для измерения времени выполнения асинхронных функций

    Args:
        func: Декорируемая асинхронная функция

    Returns:
        Декорированная асинхронная функция
    """
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        start_time = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            execution_time = time.perf_counter() - start_time
            logger.debug(f"Время выполнения {func.__name__}: {execution_time:.4f} секунд")

    return wrapper  # type: ignore


class AsyncPerformanceTracker:
    """
    Класс для отслеживания производительности в асинхронном контексте

    Пример использования:
    ```python
    async with AsyncPerformanceTracker("Доставка отложенных сообщений"):
        pending = await repo.find_active_for_receiver(user_id)
    ```
    """

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = 0.0
        self.elapsed = 0.0

    async def __aenter__(self) -> "AsyncPerformanceTracker":
        self.start_time = time.perf_counter()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        logger.debug(f"Время выполнения '{self.operation_name}': {self.elapsed:.4f} секунд")
