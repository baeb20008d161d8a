"""
Тесты для MessageRepository на временной БД SQLite
"""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.core.errors import Conflict, NotFound, StorageFailure
from chat_relay.db.models.message import ChatMessage
from chat_relay.db.repositories.message import MessageRepository

BASE = datetime(2024, 5, 1, 12, 0, 0)


def new_message(message_id, sender="user_1", receiver="user_2", minutes=0, **extra):
    return ChatMessage(
        id=message_id,
        sender_id=sender,
        sender_name=sender,
        receiver_id=receiver,
        text=extra.pop("text", f"text {message_id}"),
        created_at=BASE + timedelta(minutes=minutes),
        **extra
    )


@pytest.mark.asyncio
async def test_insert_adds_sender_to_seen_by(db_session):
    """Отправитель сразу попадает в seenBy, сообщение активно"""
    repo = MessageRepository(db_session)

    saved = await repo.insert(new_message("m1"))

    assert saved.id == "m1"
    assert saved.seen_by == ["user_1"]
    assert saved.is_deleted is False
    assert saved.type == "text"
    assert saved.push_notification_sent is False


@pytest.mark.asyncio
async def test_insert_duplicate_id_raises_conflict(session_factory):
    """Повторная вставка с тем же id - Conflict, исходная запись не меняется"""
    async with session_factory() as session:
        await MessageRepository(session).insert(new_message("m1", text="first"))

    async with session_factory() as session:
        with pytest.raises(Conflict):
            await MessageRepository(session).insert(new_message("m1", text="second"))

    async with session_factory() as session:
        stored = await MessageRepository(session).find_by_id("m1")
        assert stored.text == "first"
        assert await MessageRepository(session).count_active() == 1


@pytest.mark.asyncio
async def test_find_active_for_receiver_orders_oldest_first(db_session):
    """Очередь получателя: только его активные непросмотренные сообщения по времени"""
    repo = MessageRepository(db_session)
    await repo.insert(new_message("late", minutes=10))
    await repo.insert(new_message("early", minutes=1))
    await repo.insert(new_message("own", sender="user_2", receiver="user_1", minutes=2))
    await repo.insert(new_message("gone", minutes=3))
    await repo.soft_delete("gone", "user_1")
    await repo.insert(new_message("seen", minutes=4))
    await repo.mark_seen(["seen"], "user_2")

    pending = await repo.find_active_for_receiver("user_2")

    assert [m.id for m in pending] == ["early", "late"]


@pytest.mark.asyncio
async def test_list_active_pagination_and_order(db_session):
    """Активные сообщения сортируются по createdAt в обе стороны"""
    repo = MessageRepository(db_session)
    for i in range(5):
        await repo.insert(new_message(f"m{i}", minutes=i))
    await repo.soft_delete("m2", "user_1")

    asc = await repo.list_active(limit=10, offset=0, order="asc")
    desc = await repo.list_active(limit=2, offset=1, order="desc")

    assert [m.id for m in asc] == ["m0", "m1", "m3", "m4"]
    assert [m.id for m in desc] == ["m3", "m1"]
    assert await repo.count_active() == 4


@pytest.mark.asyncio
async def test_list_for_user_includes_sent_and_received(db_session):
    repo = MessageRepository(db_session)
    await repo.insert(new_message("a", sender="user_1", receiver="user_2", minutes=1))
    await repo.insert(new_message("b", sender="user_2", receiver="user_1", minutes=2))
    await repo.insert(new_message("c", sender="guest", receiver="user_2", minutes=3))

    messages = await repo.list_for_user("user_1")

    assert [m.id for m in messages] == ["a", "b"]


@pytest.mark.asyncio
async def test_soft_delete_is_idempotent(db_session):
    """Повторное удаление не меняет deletedAt и deletedBy"""
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))

    first, applied_first = await repo.soft_delete("m1", "user_2")
    second, applied_second = await repo.soft_delete("m1", "user_1")

    assert applied_first is True
    assert applied_second is False
    assert first.is_deleted is True
    assert second.deleted_by == "user_2"
    assert second.deleted_at == first.deleted_at
    assert await repo.find_by_id("m1", include_deleted=False) is None
    assert (await repo.find_by_id("m1")).is_deleted is True


@pytest.mark.asyncio
async def test_soft_delete_missing_message_raises_not_found(db_session):
    with pytest.raises(NotFound):
        await MessageRepository(db_session).soft_delete("missing", "user_1")


@pytest.mark.asyncio
async def test_revert_delete_restores_message(db_session):
    """Отмена удаления возвращает сообщение в исходное состояние"""
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))
    await repo.soft_delete("m1", "stranger")

    restored = await repo.revert_delete("m1", "stranger")

    assert restored.is_deleted is False
    assert restored.deleted_at is None
    assert restored.deleted_by is None
    assert [m.id for m in await repo.list_active()] == ["m1"]


@pytest.mark.asyncio
async def test_revert_delete_keeps_deletion_by_other_user(db_session):
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))
    await repo.soft_delete("m1", "user_2")

    message = await repo.revert_delete("m1", "stranger")

    assert message.is_deleted is True
    assert message.deleted_by == "user_2"


@pytest.mark.asyncio
async def test_set_reaction_replaces_previous(db_session):
    """У пользователя не больше одной реакции; пустая реакция снимает ее"""
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))

    await repo.set_reaction("m1", "user_2", "👍")
    await repo.set_reaction("m1", "user_1", "😂")
    message = await repo.set_reaction("m1", "user_2", "❤️")

    assert [(r.user_id, r.emoji) for r in message.reactions] == [("user_1", "😂"), ("user_2", "❤️")]

    message = await repo.set_reaction("m1", "user_1", None)
    assert [(r.user_id, r.emoji) for r in message.reactions] == [("user_2", "❤️")]


@pytest.mark.asyncio
async def test_set_reaction_on_deleted_message_raises_not_found(db_session):
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))
    await repo.soft_delete("m1", "user_1")

    with pytest.raises(NotFound):
        await repo.set_reaction("m1", "user_2", "👍")


@pytest.mark.asyncio
async def test_mark_seen_returns_only_updated_ids(db_session):
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))
    await repo.insert(new_message("m2", minutes=1))
    await repo.mark_seen(["m2"], "user_2")

    updated = await repo.mark_seen(["m1", "m2", "missing", "m1"], "user_2")

    assert updated == ["m1"]
    assert sorted((await repo.find_by_id("m1")).seen_by) == ["user_1", "user_2"]


@pytest.mark.asyncio
async def test_mark_push_sent(db_session):
    repo = MessageRepository(db_session)
    await repo.insert(new_message("m1"))

    assert await repo.mark_push_sent("m1") is True
    message = await repo.find_by_id("m1")
    assert message.push_notification_sent is True
    assert message.push_sent_at is not None
    assert await repo.mark_push_sent("missing") is False


@pytest.mark.asyncio
async def test_storage_error_is_translated():
    """Ошибка SQLAlchemy приводит к откату и StorageFailure"""
    mock_db = AsyncMock(spec=AsyncSession)
    mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("db is down"))

    with pytest.raises(StorageFailure):
        await MessageRepository(mock_db).list_active()

    mock_db.rollback.assert_called_once()
