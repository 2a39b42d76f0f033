from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from market_chat.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    content: str


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: str
    content: str
    created_at: datetime
    is_read: bool

    model_config = {"from_attributes": True}

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            conversation_id=self.conversation_id,
            sender_id=self.sender_id,
            content=self.content,
            created_at=self.created_at,
            is_read=self.is_read,
        )


class ReadReceiptResponse(BaseModel):
    updated: int
