"""Chat wire protocol: JSON frames exchanged over the chat socket.

Every frame is a flat JSON object with a ``type`` key. Field names on the
wire are camelCase (``userId``, ``receiverId``, ``createdAt`` ...).
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from alumni_chat.domain.entities.message import Message

INVALID_FORMAT = "Invalid message format"
MISSING_FIELDS = "Missing required fields"
NOT_AUTHENTICATED = "Not authenticated"
ALREADY_AUTHENTICATED = "Already authenticated"
UNAUTHORIZED = "Unauthorized"
UNKNOWN_TYPE = "Unknown message type"
SEND_FAILED = "Failed to send message"
HISTORY_FAILED = "Failed to load message history"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class MessagePayload(WireModel):
    """Wire shape of a stored message; ``createdAt`` is ISO-8601."""

    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool = False
    created_at: datetime

    @classmethod
    def from_entity(cls, message: Message) -> MessagePayload:
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            is_read=message.is_read,
            created_at=message.created_at,
        )

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            content=self.content,
            is_read=self.is_read,
            created_at=self.created_at,
        )


class OutgoingMessage(WireModel):
    """Body of a client ``message`` frame."""

    receiver_id: int | None = None
    content: str | None = None


# Client -> Server


class WsInbound(WireModel):
    """Loose envelope for anything a client sends; checked per type by the handler."""

    type: str
    user_id: int | None = None
    message: dict[str, Any] | None = None


class AuthenticateFrame(WireModel):
    type: Literal["authenticate"] = "authenticate"
    user_id: int


class SendMessageFrame(WireModel):
    type: Literal["message"] = "message"
    message: OutgoingMessage


# Server -> Client


class AuthSuccessFrame(WireModel):
    type: Literal["auth_success"] = "auth_success"


class HistoryFrame(WireModel):
    type: Literal["history"] = "history"
    messages: list[MessagePayload] = []


class MessageFrame(WireModel):
    type: Literal["message"] = "message"
    message: MessagePayload


class ErrorFrame(WireModel):
    type: Literal["error"] = "error"
    error: str


ServerFrame = Annotated[
    Union[AuthSuccessFrame, HistoryFrame, MessageFrame, ErrorFrame],
    Field(discriminator="type"),
]

server_frame_adapter: TypeAdapter[ServerFrame] = TypeAdapter(ServerFrame)
