"""Client-side view of the message history, grouped by conversation partner."""
from __future__ import annotations

from typing import Iterable

from alumni_chat.domain.entities.message import Message


def _order_key(message: Message) -> tuple:
    return (message.created_at, message.id)


def group_by_partner(self_id: int, messages: Iterable[Message]) -> dict[int, list[Message]]:
    """Bucket ``messages`` by the other participant, each thread oldest first.

    A message id seen twice keeps its last occurrence.
    """
    by_id = {m.id: m for m in messages}
    threads: dict[int, list[Message]] = {}
    for message in by_id.values():
        threads.setdefault(message.partner_of(self_id), []).append(message)
    for thread in threads.values():
        thread.sort(key=_order_key)
    return threads


class ConversationProjection:
    """Per-partner threads for one local user.

    ``rebuild`` replaces everything (history replay); ``merge`` patches in a
    single live message. Both keep each thread sorted by ``created_at``.
    """

    def __init__(self, self_id: int) -> None:
        self.self_id = self_id
        self._threads: dict[int, list[Message]] = {}

    def rebuild(self, messages: Iterable[Message]) -> None:
        self._threads = group_by_partner(self.self_id, messages)

    def merge(self, message: Message) -> int:
        """Add or replace ``message`` in its thread; return the partner id."""
        partner_id = message.partner_of(self.self_id)
        thread = [m for m in self._threads.get(partner_id, []) if m.id != message.id]
        thread.append(message)
        thread.sort(key=_order_key)
        self._threads[partner_id] = thread
        return partner_id

    def thread(self, partner_id: int) -> list[Message]:
        return list(self._threads.get(partner_id, ()))

    def snapshot(self) -> dict[int, list[Message]]:
        return {partner: list(thread) for partner, thread in self._threads.items()}
