"""Shared test fixtures."""
from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import pytest
from sqlalchemy.exc import SQLAlchemyError
from starlette.websockets import WebSocketState

from alumni_chat.application.dto.principal import Principal
from alumni_chat.application.uow import UoWFactory
from alumni_chat.domain.entities.message import Message
from alumni_chat.domain.value_objects.enums import MessageRole
from alumni_chat.infrastructure.ws.connection import ChatConnection
from alumni_chat.infrastructure.ws.handler import ChatProtocolHandler
from alumni_chat.infrastructure.ws.registry import ConnectionRegistry

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id=1)


@pytest.fixture
def store() -> FakeMessageStore:
    return FakeMessageStore()


@pytest.fixture
def registry() -> ConnectionRegistry[ChatConnection]:
    return ConnectionRegistry()


def make_message(
    *,
    message_id: int = 1,
    sender_id: int = 1,
    receiver_id: int = 2,
    content: str = "hello",
    is_read: bool = False,
    seconds: int | None = None,
) -> Message:
    return Message(
        id=message_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        is_read=is_read,
        created_at=BASE_TIME + timedelta(seconds=message_id if seconds is None else seconds),
    )


@dataclass
class FakeMessageStore:
    """Shared backing rows for every FakeUoW opened on it, like a database."""

    rows: list[Message] = field(default_factory=list)
    fail_writes: bool = False
    fail_reads: bool = False
    error_type: type[Exception] = SQLAlchemyError
    _next_id: int = 1

    def fail(self) -> Exception:
        return self.error_type("database unavailable")

    def add(self, message: Message) -> Message:
        self.rows.append(message)
        self._next_id = max(self._next_id, message.id + 1)
        return message


@dataclass
class FakeMessageReader:
    _store: FakeMessageStore

    def _check(self) -> None:
        if self._store.fail_reads:
            raise self._store.fail()

    async def get(self, message_id: int) -> Message | None:
        self._check()
        return next((m for m in self._store.rows if m.id == message_id), None)

    async def messages_involving(self, user_id: int, role: MessageRole) -> list[Message]:
        self._check()
        if role == MessageRole.SENDER:
            rows = [m for m in self._store.rows if m.sender_id == user_id]
        else:
            rows = [m for m in self._store.rows if m.receiver_id == user_id]
        return sorted(rows, key=lambda m: (m.created_at, m.id))

    async def conversation_between(self, user_a: int, user_b: int) -> list[Message]:
        self._check()
        rows = [
            m for m in self._store.rows
            if {m.sender_id, m.receiver_id} == {user_a, user_b}
        ]
        return sorted(rows, key=lambda m: (m.created_at, m.id))


@dataclass
class FakeMessageWriter:
    _store: FakeMessageStore

    async def persist(self, sender_id: int, receiver_id: int, content: str) -> Message:
        if self._store.fail_writes:
            raise self._store.fail()
        message_id = self._store._next_id
        return self._store.add(
            make_message(
                message_id=message_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
            )
        )

    async def mark_read(self, message_id: int) -> Message | None:
        if self._store.fail_writes:
            raise self._store.fail()
        for i, m in enumerate(self._store.rows):
            if m.id == message_id:
                self._store.rows[i] = m.marked_read()
                return self._store.rows[i]
        return None


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    store: FakeMessageStore = field(default_factory=FakeMessageStore)
    messages: FakeMessageReader | None = None
    messages_w: FakeMessageWriter | None = None
    _committed: bool = False
    _rolled_back: bool = False

    def __post_init__(self) -> None:
        if self.messages is None:
            self.messages = FakeMessageReader(self.store)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.store)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        self._rolled_back = True


def make_uow_factory(store: FakeMessageStore) -> UoWFactory:
    @asynccontextmanager
    async def _open() -> AsyncIterator[FakeUoW]:
        yield FakeUoW(store=store)

    return _open


@dataclass
class FakeWebSocket:
    """Captures what the server writes to one socket."""

    sent: list[str] = field(default_factory=list)
    client_state: WebSocketState = WebSocketState.CONNECTED
    application_state: WebSocketState = WebSocketState.CONNECTED
    fail_send: bool = False

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]

    def frames_of(self, frame_type: str) -> list[dict[str, Any]]:
        return [f for f in self.frames() if f["type"] == frame_type]

    def drop(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED


def make_handler(
    registry: ConnectionRegistry[ChatConnection],
    store: FakeMessageStore,
    *,
    verified_user_id: int | None = None,
) -> tuple[ChatProtocolHandler, FakeWebSocket]:
    ws = FakeWebSocket()
    handler = ChatProtocolHandler(
        ChatConnection(ws),  # type: ignore[arg-type]
        registry,
        make_uow_factory(store),
        verified_user_id=verified_user_id,
    )
    return handler, ws


def frame(**payload: Any) -> str:
    return json.dumps(payload)
