from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from alumni_chat.application.dto.message import SendMessageDTO
from alumni_chat.application.dto.principal import Principal
from alumni_chat.application.exceptions import StorageError, ValidationError
from alumni_chat.application.policies.permissions import assert_can_mark_read
from alumni_chat.application.uow import UnitOfWork
from alumni_chat.domain.entities.message import Message
from alumni_chat.domain.value_objects.enums import MessageRole

logger = logging.getLogger(__name__)

# asyncpg raises plain OSError subclasses (ConnectionRefusedError ...) when
# the database cannot be reached; SQLAlchemy does not wrap those.
STORE_ERRORS: tuple[type[Exception], ...] = (SQLAlchemyError, OSError)


@contextmanager
def _store_errors(detail: str) -> Iterator[None]:
    try:
        yield
    except STORE_ERRORS as exc:
        raise StorageError(detail) from exc


async def send_message(
    sender_id: int,
    dto: SendMessageDTO,
    uow: UnitOfWork,
) -> Message:
    """Persist a message from ``sender_id`` and commit.

    Raises ValidationError for an empty body and StorageError if the store
    fails; in the latter case the transaction is rolled back.
    """
    if not dto.content:
        raise ValidationError("Missing required fields")

    try:
        msg = await uow.messages_w.persist(sender_id, dto.receiver_id, dto.content)
        await uow.commit()
    except STORE_ERRORS as exc:
        try:
            await uow.rollback()
        except STORE_ERRORS:
            logger.warning("Rollback after failed send also failed", exc_info=True)
        raise StorageError("Failed to store message") from exc

    logger.debug("Message %d stored: %d -> %d", msg.id, msg.sender_id, msg.receiver_id)
    return msg


async def load_history(user_id: int, uow: UnitOfWork) -> list[Message]:
    """Every message sent or received by ``user_id``, oldest first."""
    with _store_errors("Failed to load message history"):
        received = await uow.messages.messages_involving(user_id, MessageRole.RECEIVER)
        sent = await uow.messages.messages_involving(user_id, MessageRole.SENDER)

    # Self-addressed messages come back from both queries.
    merged = {m.id: m for m in (*received, *sent)}
    return sorted(merged.values(), key=lambda m: (m.created_at, m.id))


async def list_messages(
    principal: Principal,
    role: MessageRole,
    uow: UnitOfWork,
) -> list[Message]:
    with _store_errors("Failed to load messages"):
        return await uow.messages.messages_involving(principal.user_id, role)


async def get_conversation(
    principal: Principal,
    other_user_id: int,
    uow: UnitOfWork,
) -> list[Message]:
    with _store_errors("Failed to load conversation"):
        return await uow.messages.conversation_between(principal.user_id, other_user_id)


async def mark_read(
    message_id: int,
    principal: Principal,
    uow: UnitOfWork,
) -> Message:
    with _store_errors("Failed to load message"):
        message = await uow.messages.get(message_id)
    assert_can_mark_read(principal, message)
    with _store_errors("Failed to mark message as read"):
        updated = await uow.messages_w.mark_read(message_id)
        await uow.commit()
    assert updated is not None
    return updated
