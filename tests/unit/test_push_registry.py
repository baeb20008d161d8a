"""
Тесты для реестра push-токенов
"""
import pytest

from chat_relay.core.errors import InvalidToken
from chat_relay.db.repositories.push_token import PushTokenRepository
from chat_relay.services.push_registry import PushTokenRegistry

VALID_TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"


@pytest.mark.asyncio
async def test_register_stores_token_in_memory_and_db(db_session):
    registry = PushTokenRegistry()

    await registry.register(db_session, "user_2", VALID_TOKEN)

    assert registry.lookup("user_2") == VALID_TOKEN
    status = await PushTokenRepository(db_session).get("user_2")
    assert status.expo_push_token == VALID_TOKEN
    assert status.last_seen is not None


@pytest.mark.asyncio
async def test_register_updates_existing_record(db_session):
    registry = PushTokenRegistry()
    await registry.register(db_session, "user_2", VALID_TOKEN)
    first_seen = (await PushTokenRepository(db_session).get("user_2")).last_seen

    await registry.register(db_session, "user_2", "ExpoPushToken[yyyyyyyyyyyyyyyy]")

    status = await PushTokenRepository(db_session).get("user_2")
    assert status.expo_push_token == "ExpoPushToken[yyyyyyyyyyyyyyyy]"
    assert status.last_seen >= first_seen
    assert await PushTokenRepository(db_session).list_all() == {"user_2": "ExpoPushToken[yyyyyyyyyyyyyyyy]"}


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["not-a-token", "", None, "ExponentPushToken[", 42])
async def test_invalid_token_changes_nothing(db_session, token):
    """Некорректный токен отклоняется, память и БД не меняются"""
    registry = PushTokenRegistry()
    await registry.register(db_session, "user_2", VALID_TOKEN)

    with pytest.raises(InvalidToken):
        await registry.register(db_session, "user_2", token)

    assert registry.lookup("user_2") == VALID_TOKEN
    status = await PushTokenRepository(db_session).get("user_2")
    assert status.expo_push_token == VALID_TOKEN


@pytest.mark.asyncio
async def test_register_requires_user(db_session):
    with pytest.raises(InvalidToken):
        await PushTokenRegistry().register(db_session, "", VALID_TOKEN)


@pytest.mark.asyncio
async def test_load_fills_memory_from_storage(session_factory):
    async with session_factory() as session:
        await PushTokenRegistry().register(session, "user_1", VALID_TOKEN)

    registry = PushTokenRegistry()
    async with session_factory() as session:
        loaded = await registry.load(session)

    assert loaded == 1
    assert registry.lookup("user_1") == VALID_TOKEN
    assert registry.lookup("user_2") is None
    assert registry.lookup(None) is None
