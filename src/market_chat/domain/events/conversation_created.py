from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from market_chat.domain.value_objects.enums import FeedEventType


@dataclass(frozen=True, slots=True)
class ConversationCreated:
    conversation_id: UUID
    listing_id: UUID
    buyer_id: str
    seller_id: str

    event_type = FeedEventType.CONVERSATION_CREATED

    def to_payload(self) -> dict[str, Any]:
        return {
            "conversation_id": str(self.conversation_id),
            "listing_id": str(self.listing_id),
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
        }
