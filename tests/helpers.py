"""
Вспомогательные объекты для тестов
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

VALID_TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"


class FakeWebSocket:
    """Поддельное соединение: запоминает отправленные кадры"""

    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.accepted = False
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    def events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        return [frame for frame in self.sent if name is None or frame["event"] == name]

    def last(self, name: str) -> Any:
        frames = self.events(name)
        assert frames, f"событие {name} не отправлено"
        return frames[-1]["data"]


def make_message(message_id: str, sender: str = "user_1", **extra) -> Dict[str, Any]:
    """Сообщение в формате клиента"""
    payload = {
        "_id": message_id,
        "text": f"text of {message_id}",
        "user": {"_id": sender, "name": sender.replace("_", " ").title()},
    }
    payload.update(extra)
    return payload


def iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds") + "Z"
