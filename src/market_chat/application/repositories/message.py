from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from market_chat.application.dto.conversation import ConversationStats
from market_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        """Full history ordered by (created_at, id) ascending."""
        ...

    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def latest_created_at(self, conversation_id: UUID) -> datetime | None: ...

    async def stats_for_conversations(
        self, conversation_ids: list[UUID], reader_id: str,
    ) -> dict[UUID, ConversationStats]:
        """Latest message and count of unread messages not sent by reader_id."""
        ...

    async def count_unread(self, conversation_ids: list[UUID], reader_id: str) -> int: ...


class MessageWriter(Protocol):
    async def append(self, message: Message) -> Message: ...

    async def mark_read(self, conversation_id: UUID, reader_id: str) -> int:
        """Flip is_read for every unread message not sent by reader_id. Return rows changed."""
        ...

    async def mark_one_read(self, message_id: UUID) -> bool: ...
