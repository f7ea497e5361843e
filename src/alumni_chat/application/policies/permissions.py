from __future__ import annotations

from alumni_chat.application.dto.principal import Principal
from alumni_chat.application.exceptions import ForbiddenError, NotFoundError
from alumni_chat.domain.entities.message import Message


def assert_can_mark_read(principal: Principal, message: Message | None) -> Message:
    """Raise unless the message exists and the principal is its receiver."""
    if message is None:
        raise NotFoundError("Message not found")

    if message.receiver_id != principal.user_id:
        raise ForbiddenError("Only the receiver can mark a message as read")

    return message
