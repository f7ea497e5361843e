"""Client session for the chat socket.

Typical use::

    async with ChatClientSession("ws://localhost:8000/ws", user_id=1) as chat:
        await chat.connect()
        await chat.send_message(2, "hi")
        chat.conversations[2]
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Protocol

import websockets
from pydantic import ValidationError
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    InvalidHandshake,
    InvalidURI,
)
from websockets.protocol import State

from alumni_chat.client.conversations import ConversationProjection
from alumni_chat.domain.entities.message import Message
from alumni_chat.domain.value_objects.enums import ChatStatus
from alumni_chat.infrastructure.ws.protocol import (
    AuthenticateFrame,
    AuthSuccessFrame,
    ErrorFrame,
    HistoryFrame,
    MessageFrame,
    OutgoingMessage,
    SendMessageFrame,
    server_frame_adapter,
)

logger = logging.getLogger(__name__)


class ClientSocket(Protocol):
    state: State

    async def send(self, message: str) -> None: ...
    async def close(self) -> None: ...
    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


Connector = Callable[[str], Awaitable[ClientSocket]]


class Notifier(Protocol):
    """Shows a short, user-facing notice (a toast in a UI)."""

    def __call__(self, title: str, description: str) -> None: ...


def log_notifier(title: str, description: str) -> None:
    logger.warning("%s: %s", title, description)


async def _websockets_connect(url: str) -> ClientSocket:
    return await websockets.connect(url)


class ChatClientSession:
    """One user's connection to the chat server.

    Status moves ``disconnected -> connecting -> connected``. A failed
    connect leaves it in ``error``. An abnormal close passes through
    ``error`` (with a notice and ``last_error`` set) and ends ``disconnected``,
    as do a clean close and ``disconnect()``. Reconnecting is always an
    explicit ``connect()``.
    """

    def __init__(
        self,
        url: str,
        user_id: int | None = None,
        *,
        notifier: Notifier = log_notifier,
        connector: Connector = _websockets_connect,
    ) -> None:
        self._url = url
        self._user_id = user_id
        self._notify = notifier
        self._connector = connector
        self._socket: ClientSocket | None = None
        self._reader: asyncio.Task[None] | None = None
        self._status = ChatStatus.DISCONNECTED
        self._projection = ConversationProjection(user_id) if user_id is not None else None
        self.last_error: str | None = None

    @property
    def status(self) -> ChatStatus:
        return self._status

    @property
    def user_id(self) -> int | None:
        return self._user_id

    @property
    def conversations(self) -> dict[int, list[Message]]:
        if self._projection is None:
            return {}
        return self._projection.snapshot()

    def thread(self, partner_id: int) -> list[Message]:
        if self._projection is None:
            return []
        return self._projection.thread(partner_id)

    async def set_user(self, user_id: int | None) -> None:
        """Switch the local user; the current socket belongs to the old one."""
        if user_id == self._user_id:
            return
        await self.disconnect()
        self._user_id = user_id
        self._projection = ConversationProjection(user_id) if user_id is not None else None

    async def connect(self) -> None:
        if self._user_id is None:
            return
        await self.disconnect()

        self._status = ChatStatus.CONNECTING
        try:
            socket = await self._connector(self._url)
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as exc:
            logger.error("Chat connection to %s failed: %s", self._url, exc)
            self._fail("Failed to connect to chat server. Please try again later.")
            return

        logger.info("Chat socket connected to %s", self._url)
        self._socket = socket
        self._status = ChatStatus.CONNECTED
        try:
            await socket.send(AuthenticateFrame(user_id=self._user_id).to_json())
        except ConnectionClosed:
            logger.exception("Chat socket closed during authentication")
            self._socket = None
            self._fail("Failed to connect to chat server. Please try again later.")
            return
        self._reader = asyncio.create_task(
            self._read_loop(socket), name=f"chat-reader-{self._user_id}",
        )

    async def disconnect(self) -> None:
        socket, self._socket = self._socket, None
        reader, self._reader = self._reader, None
        if socket is not None:
            await socket.close()
            logger.info("Chat socket disconnected")
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if socket is not None:
            self._status = ChatStatus.DISCONNECTED

    async def send_message(self, receiver_id: int, content: str) -> bool:
        """Transmit a message; True means sent, not yet stored.

        The stored copy arrives later as an echoed ``message`` frame.
        """
        socket = self._socket
        if socket is None or socket.state is not State.OPEN or self._user_id is None:
            self._notify("Cannot Send Message", "You are not connected to the chat server.")
            return False

        frame = SendMessageFrame(message=OutgoingMessage(receiver_id=receiver_id, content=content))
        try:
            await socket.send(frame.to_json())
        except ConnectionClosed:
            logger.exception("Error sending message")
            self._notify("Message Error", "Failed to send message. Please try again.")
            return False
        return True

    def handle_frame(self, raw: str | bytes) -> None:
        """Apply one server frame to the local state."""
        try:
            frame = server_frame_adapter.validate_json(raw)
        except ValidationError:
            logger.error("Error parsing chat frame", exc_info=True)
            return

        if isinstance(frame, AuthSuccessFrame):
            logger.debug("Chat authentication acknowledged")
        elif isinstance(frame, HistoryFrame):
            if self._projection is not None:
                self._projection.rebuild(m.to_entity() for m in frame.messages)
        elif isinstance(frame, MessageFrame):
            if self._projection is not None:
                self._projection.merge(frame.message.to_entity())
        elif isinstance(frame, ErrorFrame):
            logger.warning("Chat server error: %s", frame.error)
            self.last_error = frame.error
            self._notify("Chat Error", "The chat server could not process your request.")

    async def _read_loop(self, socket: ClientSocket) -> None:
        try:
            async for raw in socket:
                self.handle_frame(raw)
        except ConnectionClosedError as exc:
            logger.error("Chat socket closed abnormally: %s", exc)
            if socket is self._socket:
                self._socket = None
                self.last_error = str(exc)
                self._fail("Lost connection to the chat server.")
                # error is reported first, then the close that follows it
                self._status = ChatStatus.DISCONNECTED
            return

        if socket is self._socket:
            logger.info("Chat socket closed by server")
            self._socket = None
            self._status = ChatStatus.DISCONNECTED

    def _fail(self, description: str) -> None:
        self._status = ChatStatus.ERROR
        self._notify("Chat Connection Error", description)

    async def __aenter__(self) -> ChatClientSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()
