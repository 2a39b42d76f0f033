from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from market_chat.api.deps import CurrentPrincipal, UoWDep
from market_chat.api.v1.schemas.message import (
    MessageResponse,
    ReadReceiptResponse,
    SendMessageRequest,
)
from market_chat.services import message_service

router = APIRouter(prefix="/api/v1/chat", tags=["messages"])


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.list_messages(conversation_id, principal, uow)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=201,
)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.append_message(
        conversation_id, principal, body.content, uow,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.post("/conversations/{conversation_id}/read", response_model=ReadReceiptResponse)
async def mark_conversation_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ReadReceiptResponse:
    updated = await message_service.mark_read(conversation_id, principal, uow)
    return ReadReceiptResponse(updated=updated)


@router.post("/messages/{message_id}/read", response_model=ReadReceiptResponse)
async def mark_message_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ReadReceiptResponse:
    updated = await message_service.mark_one_read(message_id, principal, uow)
    return ReadReceiptResponse(updated=int(updated))
