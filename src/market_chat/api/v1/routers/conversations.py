from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status

from market_chat.api.deps import CatalogDep, CurrentPrincipal, ProfilesDep, UoWDep
from market_chat.api.v1.schemas.conversation import (
    ConversationResponse,
    ConversationSummaryResponse,
    StartConversationRequest,
    ThreadContextResponse,
    UnreadCountResponse,
)
from market_chat.services import conversation_service, inbox_service

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["conversations"])


@router.post("", response_model=ConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    response: Response,
) -> ConversationResponse:
    """Message-seller action: return the caller's conversation for the listing."""
    conv, created = await conversation_service.get_or_create_conversation(
        body.listing_id, body.seller_id, principal, uow,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("", response_model=list[ConversationSummaryResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    catalog: CatalogDep,
    profiles: ProfilesDep,
) -> list[ConversationSummaryResponse]:
    summaries = await inbox_service.list_conversation_summaries(
        principal, uow, catalog, profiles,
    )
    return [
        ConversationSummaryResponse.model_validate(s, from_attributes=True)
        for s in summaries
    ]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountResponse:
    total = await inbox_service.count_unread_total(principal, uow)
    return UnreadCountResponse(unread_count=total)


@router.get("/{conversation_id}", response_model=ThreadContextResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    catalog: CatalogDep,
    profiles: ProfilesDep,
) -> ThreadContextResponse:
    ctx = await conversation_service.get_thread_context(
        conversation_id, principal, uow, catalog, profiles,
    )
    return ThreadContextResponse.model_validate(ctx, from_attributes=True)
