"""
Участники единственной переписки
"""
from typing import Optional

from chat_relay.core.config import settings


def other_of(sender_id: Optional[str]) -> str:
    """
    Собеседник отправителя

    Переписка ведется между двумя фиксированными пользователями:
    для первого собеседником считается второй, для любого другого отправителя
    собеседник - первый.

    Args:
        sender_id: ID отправителя

    Returns:
        ID получателя
    """
    if sender_id == settings.USER_ONE_ID:
        return settings.USER_TWO_ID
    return settings.USER_ONE_ID


def resolve_receiver(message) -> str:
    """Получатель сообщения: явный receiverId или собеседник отправителя"""
    return message.receiver_id or other_of(message.sender_id)


def is_participant(message, user_id: Optional[str]) -> bool:
    """Может ли пользователь управлять сообщением (отправитель или получатель)"""
    if not user_id:
        return False
    return user_id in (message.sender_id, resolve_receiver(message))
