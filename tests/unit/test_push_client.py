"""
Тесты для клиента Expo Push API
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from chat_relay.core.errors import PushDeliveryFailure
from chat_relay.core.push import ExpoPushClient, is_expo_push_token

TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"


@pytest.mark.parametrize("token,expected", [
    ("ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]", True),
    ("ExpoPushToken[abc]", True),
    ("F5741A13-BCDA-434B-A316-5DC0E6FFA94F", True),
    ("ExponentPushToken[abc", False),
    ("just-a-string", False),
    ("", False),
    (None, False),
    (123, False),
])
def test_is_expo_push_token(token, expected):
    assert is_expo_push_token(token) is expected


def mock_http_client(status_code=200, body=None, error=None):
    """Мок httpx.AsyncClient, используемого как контекстный менеджер"""
    response = MagicMock()
    response.status_code = status_code
    response.text = str(body)
    response.json.return_value = body if body is not None else {"data": {"status": "ok", "id": "ticket-1"}}

    client = AsyncMock()
    if error is not None:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    return client


@pytest.mark.asyncio
async def test_send_posts_notification():
    client = mock_http_client()
    push = ExpoPushClient(push_url="https://push.test/send", access_token="secret", timeout=3)

    with patch("chat_relay.core.push.httpx.AsyncClient", return_value=client):
        ticket = await push.send(TOKEN, "New message from Anna", "Hola", data={"messageId": "m1"})

    assert ticket == {"status": "ok", "id": "ticket-1"}
    args, kwargs = client.post.call_args
    assert args[0] == "https://push.test/send"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["json"] == {
        "to": TOKEN,
        "title": "New message from Anna",
        "body": "Hola",
        "sound": "default",
        "data": {"messageId": "m1"},
    }


@pytest.mark.asyncio
async def test_send_accepts_ticket_list():
    client = mock_http_client(body={"data": [{"status": "ok", "id": "ticket-2"}]})

    with patch("chat_relay.core.push.httpx.AsyncClient", return_value=client):
        ticket = await ExpoPushClient(access_token="").send(TOKEN, "t", "b")

    assert ticket["id"] == "ticket-2"
    assert "Authorization" not in client.post.call_args.kwargs["headers"]


@pytest.mark.asyncio
async def test_send_error_ticket_raises():
    client = mock_http_client(body={"data": {"status": "error", "message": "DeviceNotRegistered"}})

    with patch("chat_relay.core.push.httpx.AsyncClient", return_value=client):
        with pytest.raises(PushDeliveryFailure, match="DeviceNotRegistered"):
            await ExpoPushClient().send(TOKEN, "t", "b")


@pytest.mark.asyncio
async def test_send_http_status_raises():
    client = mock_http_client(status_code=500, body={"errors": ["boom"]})

    with patch("chat_relay.core.push.httpx.AsyncClient", return_value=client):
        with pytest.raises(PushDeliveryFailure):
            await ExpoPushClient().send(TOKEN, "t", "b")


@pytest.mark.asyncio
async def test_send_transport_error_raises():
    client = mock_http_client(error=httpx.ConnectError("connection refused"))

    with patch("chat_relay.core.push.httpx.AsyncClient", return_value=client):
        with pytest.raises(PushDeliveryFailure):
            await ExpoPushClient().send(TOKEN, "t", "b")
