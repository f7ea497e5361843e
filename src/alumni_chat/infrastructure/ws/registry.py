"""In-process registry of live chat connections, one per user."""
from __future__ import annotations

import logging
import threading
from typing import Generic, TypeVar

from alumni_chat.domain.value_objects.ids import UserId

logger = logging.getLogger(__name__)

ConnT = TypeVar("ConnT")


class ConnectionRegistry(Generic[ConnT]):
    """Maps a user id to that user's current connection.

    Last writer wins: ``register`` replaces any earlier entry without closing
    it. ``unregister`` only removes the entry if it still points at the given
    connection, so a late close of a replaced socket cannot evict its
    successor. All access goes through a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: dict[UserId, ConnT] = {}

    def register(self, user_id: UserId, connection: ConnT) -> ConnT | None:
        """Bind ``connection`` to ``user_id``; return the displaced one, if any."""
        with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection
            total = len(self._connections)
        if previous is not None and previous is not connection:
            logger.info("User %d re-registered, previous connection replaced", user_id)
        logger.debug("Registered user %d (total=%d)", user_id, total)
        return previous

    def lookup(self, user_id: UserId) -> ConnT | None:
        with self._lock:
            return self._connections.get(user_id)

    def unregister(self, user_id: UserId, connection: ConnT) -> bool:
        """Remove ``user_id`` if it is still bound to ``connection``."""
        with self._lock:
            if self._connections.get(user_id) is not connection:
                return False
            del self._connections[user_id]
        logger.debug("Unregistered user %d", user_id)
        return True

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
