import json
import logging
import sys
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Настройка форматтеров для логов
file_formatter = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
console_formatter = logging.Formatter(
    "%(levelname)s: [%(name)s] %(message)s (%(asctime)s)"
)


# Настройка обработчиков для логов
def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Настройка логирования приложения

    Args:
        log_level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Директория для файлов логов; без нее логи пишутся только в консоль
    """
    # Преобразование уровня логирования из строки
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    # Корневой логгер
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Очистка обработчиков, если они уже существуют
    root_logger.handlers.clear()

    # Обработчик для консоли
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        # Создание директории для логов, если ее нет
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Обработчик для файла
        log_file = log_path / f"relay_{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        # Отдельный файл для ошибок
        error_file = log_path / f"errors_{datetime.now().strftime('%Y-%m-%d')}.log"
        error_handler = logging.FileHandler(error_file, encoding="utf-8")
        error_handler.setFormatter(file_formatter)
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

    # SQL-запросы логируются только при явном включении echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root_logger.info(f"Logging configured with level {log_level}")



# Служебные пути: мобильный клиент и хостинг опрашивают их постоянно
QUIET_PATHS = ("/health", "/wakeup", "/metrics")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware для логирования запросов REST API

    Идентификатор запроса берется из заголовка X-Request-ID (или создается)
    и возвращается клиенту в том же заголовке.
    """

    def __init__(self, app, quiet_paths: Tuple[str, ...] = QUIET_PATHS):
        super().__init__(app)
        self.quiet_paths = quiet_paths
        self.logger = logging.getLogger("api")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        quiet = request.url.path in self.quiet_paths

        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "client": request.client.host if request.client else None,
        }
        self.logger.log(logging.DEBUG if quiet else logging.INFO, f"Request: {json.dumps(entry)}")

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                f"Request {request_id} failed after {time.perf_counter() - start_time:.4f}s: {str(e)}",
                exc_info=True
            )
            raise

        entry = {
            "request_id": request_id,
            "status_code": response.status_code,
            "processing_time": f"{time.perf_counter() - start_time:.4f}s",
        }
        self.logger.log(self._level_for(response.status_code, quiet), f"Response: {json.dumps(entry)}")

        response.headers["X-Request-ID"] = request_id
        return response

    @staticmethod
    def _level_for(status_code: int, quiet: bool) -> int:
        """Уровень логирования зависит от статус-кода"""
        if status_code >= 500:
            return logging.ERROR
        if status_code >= 400:
            return logging.WARNING
        return logging.DEBUG if quiet else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Логгер модуля (настраивается через корневой логгер в setup_logging)"""
    return logging.getLogger(name)
