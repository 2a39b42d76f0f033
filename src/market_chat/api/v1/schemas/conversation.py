from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from market_chat.api.v1.schemas.message import MessageResponse
from market_chat.domain.value_objects.enums import ParticipantRole


class StartConversationRequest(BaseModel):
    listing_id: UUID
    seller_id: str


class ConversationResponse(BaseModel):
    id: UUID
    listing_id: UUID
    buyer_id: str
    seller_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ListingSnippetResponse(BaseModel):
    id: UUID
    title: str
    price: Decimal
    photo_url: str | None

    model_config = {"from_attributes": True}


class ProfileSnippetResponse(BaseModel):
    id: str
    display_name: str | None
    avatar_url: str | None

    model_config = {"from_attributes": True}


class ConversationSummaryResponse(BaseModel):
    conversation: ConversationResponse
    other_participant: ProfileSnippetResponse
    listing: ListingSnippetResponse
    last_message: MessageResponse | None
    last_activity_at: datetime
    unread_count: int

    model_config = {"from_attributes": True}


class ThreadContextResponse(BaseModel):
    conversation: ConversationResponse
    other_participant: ProfileSnippetResponse
    listing: ListingSnippetResponse
    my_role: ParticipantRole

    model_config = {"from_attributes": True}


class UnreadCountResponse(BaseModel):
    unread_count: int
