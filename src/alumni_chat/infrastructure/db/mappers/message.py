from __future__ import annotations

from datetime import timezone

from alumni_chat.domain.entities.message import Message
from alumni_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    created_at = model.created_at
    # The column is "timestamp without time zone"; values are written in UTC.
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        content=model.content,
        is_read=model.is_read,
        created_at=created_at,
    )
