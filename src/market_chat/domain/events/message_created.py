from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.enums import FeedEventType


@dataclass(frozen=True, slots=True)
class MessageCreated:
    """Feed notification carrying the full persisted message row."""

    message: Message

    event_type = FeedEventType.MESSAGE_CREATED

    @property
    def conversation_id(self) -> UUID:
        return self.message.conversation_id

    def to_payload(self) -> dict[str, Any]:
        msg = self.message
        return {
            "conversation_id": str(msg.conversation_id),
            "message": {
                "id": str(msg.id),
                "conversation_id": str(msg.conversation_id),
                "sender_id": msg.sender_id,
                "content": msg.content,
                "created_at": msg.created_at.isoformat(),
                "is_read": msg.is_read,
            },
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> MessageCreated:
        raw = data["message"]
        return cls(
            message=Message(
                id=UUID(raw["id"]),
                conversation_id=UUID(raw["conversation_id"]),
                sender_id=raw["sender_id"],
                content=raw["content"],
                created_at=datetime.fromisoformat(raw["created_at"]),
                is_read=bool(raw.get("is_read", False)),
            )
        )
