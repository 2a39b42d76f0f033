from __future__ import annotations

from typing import Protocol
from uuid import UUID

from market_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_by_listing_and_buyer(
        self, listing_id: UUID, buyer_id: str,
    ) -> Conversation | None: ...

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        """Every conversation where the user is buyer or seller."""
        ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation:
        """Insert. Raise ConflictError if (listing_id, buyer_id) already exists."""
        ...
