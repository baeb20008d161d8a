"""
Тесты для таблицы присутствия
"""
from chat_relay.services.presence import PresenceTable


def test_set_and_get():
    presence = PresenceTable()

    assert presence.set("user_1", "conn-a") is None
    assert presence.get("user_1") == "conn-a"
    assert presence.user_for("conn-a") == "user_1"
    assert presence.count() == 1


def test_last_connection_wins():
    """Новое соединение пользователя заменяет старое"""
    presence = PresenceTable()
    presence.set("user_1", "conn-a")

    previous = presence.set("user_1", "conn-b")

    assert previous == "conn-a"
    assert presence.get("user_1") == "conn-b"
    assert presence.user_for("conn-a") is None


def test_stale_connection_does_not_evict_newer():
    """Закрытие старого соединения не удаляет запись нового"""
    presence = PresenceTable()
    presence.set("user_1", "conn-a")
    presence.set("user_1", "conn-b")

    assert presence.remove("user_1", "conn-a") is False
    assert presence.get("user_1") == "conn-b"

    assert presence.remove("user_1", "conn-b") is True
    assert presence.get("user_1") is None
    assert presence.users() == []


def test_remove_without_connection_id():
    presence = PresenceTable()
    presence.set("user_1", "conn-a")
    presence.set("user_2", "conn-b")

    assert presence.remove("user_1") is True
    assert presence.remove("user_1") is False
    assert presence.users() == ["user_2"]
