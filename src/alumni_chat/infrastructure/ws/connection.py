"""Server side of one chat socket."""
from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from alumni_chat.domain.entities.message import Message
from alumni_chat.infrastructure.ws.protocol import (
    HistoryFrame,
    MessageFrame,
    MessagePayload,
    WireModel,
)

logger = logging.getLogger(__name__)


class ChatConnection:
    """Serialises writes to a WebSocket and holds live pushes during history replay.

    Between ``begin_replay`` and the end of ``finish_replay`` any pushed
    message is queued. Once the history frame is out, queued messages not
    already part of the history are sent in arrival order.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        self._send_lock = asyncio.Lock()
        self._replaying = False
        self._held: list[Message] = []

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send_frame(self, frame: WireModel) -> None:
        raw = frame.to_json()
        async with self._send_lock:
            await self._ws.send_text(raw)

    async def push_message(self, message: Message) -> None:
        if self._replaying:
            self._held.append(message)
            return
        await self.send_frame(MessageFrame(message=MessagePayload.from_entity(message)))

    def begin_replay(self) -> None:
        self._replaying = True
        self._held.clear()

    async def finish_replay(self, history: list[Message] | None) -> None:
        """Send ``history`` (unless None) and release held pushes."""
        try:
            seen: set[int] = set()
            if history is not None:
                seen = {m.id for m in history}
                await self.send_frame(
                    HistoryFrame(messages=[MessagePayload.from_entity(m) for m in history])
                )
            while self._held:
                message = self._held.pop(0)
                if message.id in seen:
                    logger.debug("Message %d already in history, push dropped", message.id)
                    continue
                seen.add(message.id)
                await self.send_frame(MessageFrame(message=MessagePayload.from_entity(message)))
        finally:
            self._replaying = False
            self._held.clear()
