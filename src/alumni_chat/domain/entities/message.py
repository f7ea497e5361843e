from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    """A direct message between two users. Only ``is_read`` ever changes."""

    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool
    created_at: datetime

    def partner_of(self, user_id: int) -> int:
        """Return the other participant relative to ``user_id``."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    def marked_read(self) -> Message:
        return replace(self, is_read=True)
