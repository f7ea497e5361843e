from __future__ import annotations

from enum import StrEnum


class MessageRole(StrEnum):
    SENDER = "sender"
    RECEIVER = "receiver"


class ProtocolState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class ChatStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class FrameType(StrEnum):
    """Frame types a client may send."""

    AUTHENTICATE = "authenticate"
    MESSAGE = "message"
