from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from alumni_chat.api.deps import RegistryDep, UoWFactoryDep, get_verifier
from alumni_chat.api.middleware.correlation_id import correlation_id_ctx, new_correlation_id
from alumni_chat.application.dto.principal import Principal
from alumni_chat.config import settings
from alumni_chat.infrastructure.ws.connection import ChatConnection
from alumni_chat.infrastructure.ws.handler import ChatProtocolHandler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket(settings.WS_PATH)
async def ws_chat(
    websocket: WebSocket,
    registry: RegistryDep,
    uow_factory: UoWFactoryDep,
    token: str | None = Query(None),
) -> None:
    cid_token = correlation_id_ctx.set(new_correlation_id())
    try:
        verified_user_id: int | None = None
        if token is not None:
            principal = await _authenticate(token)
            if principal is None:
                await websocket.close(code=4001, reason="Authentication failed")
                return
            verified_user_id = principal.user_id
        elif settings.WS_REQUIRE_TOKEN:
            await websocket.close(code=4001, reason="Token required")
            return

        await websocket.accept()
        handler = ChatProtocolHandler(
            ChatConnection(websocket),
            registry,
            uow_factory,
            verified_user_id=verified_user_id,
        )
        try:
            await _read_loop(websocket, handler)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WS error for user %s", handler.user_id)
        finally:
            handler.close()
    finally:
        correlation_id_ctx.reset(cid_token)


async def _read_loop(ws: WebSocket, handler: ChatProtocolHandler) -> None:
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes") or b""
        await handler.handle_frame(raw)
