"""
Таблица присутствия: какой пользователь на каком соединении
"""
from typing import Dict, List, Optional

from chat_relay.core import metrics
from chat_relay.core.logging import get_logger

# Получение логгера
logger = get_logger("presence")


class PresenceTable:
    """
    Соответствие user_id -> connection_id

    Новое соединение пользователя заменяет старое. Таблица живет в памяти
    процесса и изменяется только из цикла событий.
    """

    def __init__(self):
        self._connections: Dict[str, str] = {}

    def set(self, user_id: str, connection_id: str) -> Optional[str]:
        """
        Регистрация пользователя на соединении

        Args:
            user_id: ID пользователя
            connection_id: Идентификатор соединения

        Returns:
            Предыдущее соединение пользователя, если оно было
        """
        previous = self._connections.get(user_id)
        self._connections[user_id] = connection_id
        if previous and previous != connection_id:
            logger.info(f"Пользователь {user_id} переподключился: {previous} -> {connection_id}")
        else:
            logger.info(f"Пользователь {user_id} в сети (соединение {connection_id})")
        metrics.update_online_users(self.count())
        return previous

    def get(self, user_id: str) -> Optional[str]:
        return self._connections.get(user_id)

    def remove(self, user_id: str, connection_id: Optional[str] = None) -> bool:
        """
        Удаление записи пользователя

        Если указан connection_id, запись удаляется только когда она
        все еще указывает на это соединение.

        Returns:
            True, если запись удалена
        """
        current = self._connections.get(user_id)
        if current is None:
            return False
        if connection_id is not None and current != connection_id:
            logger.debug(f"Соединение {connection_id} пользователя {user_id} уже заменено на {current}")
            return False

        del self._connections[user_id]
        metrics.update_online_users(self.count())
        logger.info(f"Пользователь {user_id} не в сети")
        return True

    def user_for(self, connection_id: str) -> Optional[str]:
        """Пользователь, зарегистрированный на соединении"""
        for user_id, current in self._connections.items():
            if current == connection_id:
                return user_id
        return None

    def count(self) -> int:
        return len(self._connections)

    def users(self) -> List[str]:
        return list(self._connections.keys())
