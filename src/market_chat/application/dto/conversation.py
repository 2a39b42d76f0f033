from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from market_chat.domain.entities.conversation import Conversation
from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.enums import ParticipantRole


@dataclass(frozen=True, slots=True)
class ListingSnippet:
    id: UUID
    title: str = "Item"
    price: Decimal = Decimal(0)
    photo_url: str | None = None


@dataclass(frozen=True, slots=True)
class ProfileSnippet:
    id: str
    display_name: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class ConversationStats:
    """Pre-aggregated latest message and unread count for one conversation."""

    conversation_id: UUID
    last_message: Message | None
    unread_count: int


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    conversation: Conversation
    other_participant: ProfileSnippet
    listing: ListingSnippet
    last_message: Message | None
    unread_count: int

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.created_at
        return self.conversation.created_at


@dataclass(frozen=True, slots=True)
class ThreadContext:
    """Everything a thread header needs besides the messages themselves."""

    conversation: Conversation
    other_participant: ProfileSnippet
    listing: ListingSnippet
    my_role: ParticipantRole
