from __future__ import annotations

from typing import Protocol

from alumni_chat.domain.entities.message import Message
from alumni_chat.domain.value_objects.enums import MessageRole


class MessageReader(Protocol):
    async def get(self, message_id: int) -> Message | None: ...

    async def messages_involving(self, user_id: int, role: MessageRole) -> list[Message]:
        """Messages where ``user_id`` plays ``role``, oldest first."""
        ...

    async def conversation_between(self, user_a: int, user_b: int) -> list[Message]: ...


class MessageWriter(Protocol):
    async def persist(self, sender_id: int, receiver_id: int, content: str) -> Message:
        """Insert a message. The store assigns id, created_at and is_read=False."""
        ...

    async def mark_read(self, message_id: int) -> Message | None: ...
