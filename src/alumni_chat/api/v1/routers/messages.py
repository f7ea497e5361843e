from __future__ import annotations

from fastapi import APIRouter, Query

from alumni_chat.api.deps import CurrentPrincipal, UoWDep
from alumni_chat.api.v1.schemas.message import MessageResponse, SendMessageRequest
from alumni_chat.application.dto.message import SendMessageDTO
from alumni_chat.domain.value_objects.enums import MessageRole
from alumni_chat.services import message_service

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.send_message(
        principal.user_id,
        SendMessageDTO(receiver_id=body.receiver_id, content=body.content),
        uow,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.get("", response_model=list[MessageResponse])
async def list_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    role: MessageRole = Query(MessageRole.RECEIVER),
) -> list[MessageResponse]:
    messages = await message_service.list_messages(principal, role, uow)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.get("/conversation/{user_id}", response_model=list[MessageResponse])
async def get_conversation(
    user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.get_conversation(principal, user_id, uow)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.patch("/{message_id}/read", response_model=MessageResponse)
async def mark_read(
    message_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.mark_read(message_id, principal, uow)
    return MessageResponse.model_validate(msg, from_attributes=True)
