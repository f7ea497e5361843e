"""Per-socket chat protocol state machine."""
from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from alumni_chat.application.dto.message import SendMessageDTO
from alumni_chat.application.exceptions import StorageError, ValidationError
from alumni_chat.application.uow import UoWFactory
from alumni_chat.domain.entities.message import Message
from alumni_chat.domain.value_objects.enums import FrameType, ProtocolState
from alumni_chat.domain.value_objects.ids import UserId
from alumni_chat.infrastructure.ws import protocol
from alumni_chat.infrastructure.ws.connection import ChatConnection
from alumni_chat.infrastructure.ws.protocol import (
    AuthSuccessFrame,
    ErrorFrame,
    MessageFrame,
    MessagePayload,
    OutgoingMessage,
    WsInbound,
)
from alumni_chat.infrastructure.ws.registry import ConnectionRegistry
from alumni_chat.services import message_service

logger = logging.getLogger(__name__)


class ChatProtocolHandler:
    """Drives one chat socket from UNAUTHENTICATED to AUTHENTICATED.

    Frames are fed in order through ``handle_frame``; ``close`` must be called
    once the socket is gone. Errors never change state: they are reported to
    this socket only, as ``error`` frames.

    When ``verified_user_id`` is given (the socket carried a valid token) an
    ``authenticate`` frame claiming any other user is rejected. Otherwise the
    claimed id is trusted.
    """

    def __init__(
        self,
        connection: ChatConnection,
        registry: ConnectionRegistry[ChatConnection],
        uow_factory: UoWFactory,
        *,
        verified_user_id: int | None = None,
    ) -> None:
        self._connection = connection
        self._registry = registry
        self._uow_factory = uow_factory
        self._verified_user_id = verified_user_id
        self._state = ProtocolState.UNAUTHENTICATED
        self._user_id: UserId | None = None

    @property
    def state(self) -> ProtocolState:
        return self._state

    @property
    def user_id(self) -> UserId | None:
        return self._user_id

    async def handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Unparseable frame from user %s", self._user_id)
            await self._send_error(protocol.INVALID_FORMAT)
            return

        if frame.type == FrameType.AUTHENTICATE:
            await self._handle_authenticate(frame)
        elif self._state is ProtocolState.UNAUTHENTICATED:
            logger.warning("Frame %r received before authenticate, ignored", frame.type)
            await self._send_error(protocol.NOT_AUTHENTICATED)
        elif frame.type == FrameType.MESSAGE:
            await self._handle_message(frame)
        else:
            await self._send_error(protocol.UNKNOWN_TYPE)

    def close(self) -> None:
        if self._user_id is None:
            return
        if self._registry.unregister(self._user_id, self._connection):
            logger.info("User %d disconnected", self._user_id)
        else:
            logger.debug("User %d closed a replaced connection", self._user_id)

    async def _handle_authenticate(self, frame: WsInbound) -> None:
        if self._state is ProtocolState.AUTHENTICATED:
            await self._send_error(protocol.ALREADY_AUTHENTICATED)
            return
        if frame.user_id is None:
            await self._send_error(protocol.MISSING_FIELDS)
            return
        if self._verified_user_id is not None and frame.user_id != self._verified_user_id:
            logger.warning(
                "Socket verified as user %d claimed user %d",
                self._verified_user_id,
                frame.user_id,
            )
            await self._send_error(protocol.UNAUTHORIZED)
            return

        user_id = UserId(frame.user_id)
        # Register before reading history: anything persisted after the
        # snapshot reaches this socket through a live push.
        self._connection.begin_replay()
        self._registry.register(user_id, self._connection)
        self._user_id = user_id
        self._state = ProtocolState.AUTHENTICATED
        logger.info("User %d connected", user_id)

        history: list[Message] | None = None
        try:
            await self._connection.send_frame(AuthSuccessFrame())
            try:
                async with self._uow_factory() as uow:
                    history = await message_service.load_history(user_id, uow)
            except StorageError:
                logger.exception("History load failed for user %d", user_id)
                await self._send_error(protocol.HISTORY_FAILED)
        finally:
            await self._connection.finish_replay(history)

    async def _handle_message(self, frame: WsInbound) -> None:
        assert self._user_id is not None
        try:
            body = OutgoingMessage.model_validate(frame.message or {})
        except PydanticValidationError:
            body = None
        if body is None or not body.receiver_id or body.content is None:
            await self._send_error(protocol.MISSING_FIELDS)
            return

        dto = SendMessageDTO(receiver_id=body.receiver_id, content=body.content)
        try:
            async with self._uow_factory() as uow:
                message = await message_service.send_message(self._user_id, dto, uow)
        except ValidationError as exc:
            await self._send_error(exc.detail)
            return
        except StorageError:
            logger.exception("Could not store message from user %d", self._user_id)
            await self._send_error(protocol.SEND_FAILED)
            return

        await self._deliver(message)
        await self._connection.send_frame(MessageFrame(message=MessagePayload.from_entity(message)))

    async def _deliver(self, message: Message) -> None:
        """Best-effort live push to the receiver; offline receivers get it on replay."""
        if message.receiver_id == message.sender_id:
            return
        receiver_id = UserId(message.receiver_id)
        recipient = self._registry.lookup(receiver_id)
        if recipient is None:
            logger.debug("User %d offline, message %d deferred", receiver_id, message.id)
            return
        if not recipient.is_open:
            self._registry.unregister(receiver_id, recipient)
            return
        try:
            await recipient.push_message(message)
        except Exception:
            logger.exception("Push of message %d to user %d failed", message.id, receiver_id)
            self._registry.unregister(receiver_id, recipient)

    async def _send_error(self, error: str) -> None:
        await self._connection.send_frame(ErrorFrame(error=error))
