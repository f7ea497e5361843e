from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.protocol import State

from alumni_chat.client.session import ChatClientSession
from alumni_chat.domain.value_objects.enums import ChatStatus
from alumni_chat.infrastructure.ws.protocol import MessagePayload
from tests.conftest import make_message

_ABNORMAL = object()


class FakeClientSocket:
    """Scripted stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self.state = State.OPEN
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self._incoming: asyncio.Queue[object] = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.close_calls += 1
        self.state = State.CLOSED
        self._incoming.put_nowait(None)

    def feed(self, **payload: Any) -> None:
        self._incoming.put_nowait(json.dumps(payload))

    def server_close(self) -> None:
        self.state = State.CLOSED
        self._incoming.put_nowait(None)

    def drop(self) -> None:
        self.state = State.CLOSED
        self._incoming.put_nowait(_ABNORMAL)

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        while True:
            item = await self._incoming.get()
            if item is None:
                return
            if item is _ABNORMAL:
                raise ConnectionClosedError(None, None)
            yield item


class Recorder:
    def __init__(self) -> None:
        self.notices: list[str] = []

    def __call__(self, title: str, description: str) -> None:
        self.notices.append(title)


async def settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def wire(message) -> dict[str, Any]:
    return json.loads(MessagePayload.from_entity(message).to_json())


def make_session(user_id: int | None = 1):
    socket = FakeClientSocket()
    notices = Recorder()
    calls: list[str] = []

    async def connector(url: str) -> FakeClientSocket:
        calls.append(url)
        return socket

    session = ChatClientSession(
        "ws://testserver/ws", user_id, notifier=notices, connector=connector,
    )
    return session, socket, notices, calls


@pytest.mark.asyncio
async def test_connect_without_user_is_noop():
    session, _, _, calls = make_session(user_id=None)

    await session.connect()

    assert session.status is ChatStatus.DISCONNECTED
    assert calls == []


@pytest.mark.asyncio
async def test_connect_sends_authenticate():
    session, socket, _, calls = make_session(user_id=1)

    await session.connect()

    assert calls == ["ws://testserver/ws"]
    assert session.status is ChatStatus.CONNECTED
    assert socket.sent == [{"type": "authenticate", "userId": 1}]
    await session.disconnect()


@pytest.mark.asyncio
async def test_connect_failure_sets_error():
    notices = Recorder()

    async def connector(url: str):
        raise OSError("connection refused")

    session = ChatClientSession("ws://testserver/ws", 1, notifier=notices, connector=connector)

    await session.connect()

    assert session.status is ChatStatus.ERROR
    assert notices.notices == ["Chat Connection Error"]


@pytest.mark.asyncio
async def test_history_and_live_messages_build_conversations():
    session, socket, _, _ = make_session(user_id=1)
    await session.connect()

    socket.feed(type="auth_success")
    socket.feed(type="history", messages=[
        wire(make_message(message_id=2, sender_id=2, receiver_id=1, seconds=20)),
        wire(make_message(message_id=1, sender_id=1, receiver_id=2, seconds=10)),
        wire(make_message(message_id=3, sender_id=3, receiver_id=1, seconds=15)),
    ])
    socket.feed(type="message", message=wire(
        make_message(message_id=4, sender_id=1, receiver_id=3, seconds=30)
    ))
    await settle()

    conversations = session.conversations
    assert {p: [m.id for m in t] for p, t in conversations.items()} == {2: [1, 2], 3: [3, 4]}
    assert session.status is ChatStatus.CONNECTED
    await session.disconnect()


@pytest.mark.asyncio
async def test_history_replaces_conversations():
    session, _, _, _ = make_session(user_id=1)
    session.handle_frame(json.dumps({
        "type": "message",
        "message": wire(make_message(message_id=1, sender_id=9, receiver_id=1)),
    }))

    session.handle_frame(json.dumps({"type": "history", "messages": []}))

    assert session.conversations == {}


@pytest.mark.asyncio
async def test_malformed_frame_is_ignored():
    session, _, notices, _ = make_session(user_id=1)

    session.handle_frame("definitely not json")
    session.handle_frame(json.dumps({"type": "mystery"}))

    assert session.conversations == {}
    assert notices.notices == []


@pytest.mark.asyncio
async def test_error_frame_notifies_user():
    session, _, notices, _ = make_session(user_id=1)

    session.handle_frame(json.dumps({"type": "error", "error": "Failed to send message"}))

    assert session.last_error == "Failed to send message"
    assert notices.notices == ["Chat Error"]


@pytest.mark.asyncio
async def test_send_message_when_disconnected():
    session, _, notices, _ = make_session(user_id=1)

    assert await session.send_message(2, "hi") is False
    assert notices.notices == ["Cannot Send Message"]


@pytest.mark.asyncio
async def test_send_message_transmits_frame():
    session, socket, _, _ = make_session(user_id=1)
    await session.connect()

    assert await session.send_message(2, "hi") is True

    assert socket.sent[-1] == {"type": "message", "message": {"receiverId": 2, "content": "hi"}}
    await session.disconnect()


@pytest.mark.asyncio
async def test_send_message_on_closing_socket_fails():
    session, socket, notices, _ = make_session(user_id=1)
    await session.connect()
    socket.state = State.CLOSING

    assert await session.send_message(2, "hi") is False
    assert notices.notices == ["Cannot Send Message"]
    await session.disconnect()


@pytest.mark.asyncio
async def test_server_close_moves_to_disconnected():
    session, socket, notices, _ = make_session(user_id=1)
    await session.connect()

    socket.server_close()
    await settle()

    assert session.status is ChatStatus.DISCONNECTED
    assert notices.notices == []
    assert await session.send_message(2, "hi") is False


@pytest.mark.asyncio
async def test_abnormal_close_reports_error_then_disconnects():
    seen: list[ChatStatus] = []
    socket = FakeClientSocket()

    async def connector(url: str) -> FakeClientSocket:
        return socket

    session = ChatClientSession(
        "ws://testserver/ws", 1,
        notifier=lambda title, description: seen.append(session.status),
        connector=connector,
    )
    await session.connect()

    socket.drop()
    await settle()

    assert seen == [ChatStatus.ERROR]
    assert session.status is ChatStatus.DISCONNECTED
    assert session.last_error is not None
    assert await session.send_message(2, "hi") is False


@pytest.mark.asyncio
async def test_reconnect_after_abnormal_close():
    session, socket, _, calls = make_session(user_id=1)
    await session.connect()
    socket.drop()
    await settle()

    socket.state = State.OPEN
    await session.connect()

    assert session.status is ChatStatus.CONNECTED
    assert len(calls) == 2
    await session.disconnect()


@pytest.mark.asyncio
async def test_disconnect_is_idempotent():
    session, socket, _, _ = make_session(user_id=1)
    await session.connect()

    await session.disconnect()
    await session.disconnect()

    assert socket.close_calls == 1
    assert session.status is ChatStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_changing_user_disconnects_and_resets():
    session, socket, _, _ = make_session(user_id=1)
    await session.connect()
    session.handle_frame(json.dumps({
        "type": "message",
        "message": wire(make_message(message_id=1, sender_id=1, receiver_id=2)),
    }))

    await session.set_user(2)

    assert socket.close_calls == 1
    assert session.status is ChatStatus.DISCONNECTED
    assert session.user_id == 2
    assert session.conversations == {}


@pytest.mark.asyncio
async def test_context_manager_disconnects():
    session, socket, _, _ = make_session(user_id=1)

    async with session:
        await session.connect()

    assert socket.close_calls == 1
    assert session.status is ChatStatus.DISCONNECTED
