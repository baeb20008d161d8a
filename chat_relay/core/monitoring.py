"""
Сведения о ресурсах процесса для эндпоинта мониторинга
"""
import asyncio
import os
import time
from typing import Dict

import psutil

from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("monitoring")


def get_resource_usage() -> Dict:
    """
    Получает информацию об использовании ресурсов текущим процессом

    Returns:
        Dict: Словарь с данными об использовании ресурсов (пустой при ошибке)
    """
    try:
        process = psutil.Process(os.getpid())
        cpu_times = process.cpu_times()
        memory_info = process.memory_info()

        return {
            "cpu": {
                "percent": process.cpu_percent(interval=None),
                "user": cpu_times.user,
                "system": cpu_times.system
            },
            "memory": {
                "rss": memory_info.rss,  # Физическая память (RAM)
                "vms": memory_info.vms,  # Виртуальная память
                "percent": process.memory_percent()
            },
            "threads": process.num_threads(),
            "timestamp": time.time()
        }

    except psutil.Error as e:
        logger.error(f"Ошибка при получении информации о ресурсах: {str(e)}", exc_info=True)
        return {}


async def get_resources() -> Dict:
    """Получение информации о ресурсах без блокировки цикла событий"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, get_resource_usage)
