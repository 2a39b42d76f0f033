from __future__ import annotations

from typing import Protocol
from uuid import UUID

from market_chat.domain.entities.message import Message


class MessageStore(Protocol):
    """Message Store as seen by one authenticated client."""

    async def list_messages(self, conversation_id: UUID) -> list[Message]: ...

    async def append_message(self, conversation_id: UUID, content: str) -> Message: ...

    async def mark_read(self, conversation_id: UUID) -> int: ...

    async def mark_one_read(self, message_id: UUID) -> bool: ...
