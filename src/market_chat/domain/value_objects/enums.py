from __future__ import annotations

from enum import StrEnum


class ParticipantRole(StrEnum):
    BUYER = "buyer"
    SELLER = "seller"


class FeedEventType(StrEnum):
    MESSAGE_CREATED = "message.created"
    CONVERSATION_CREATED = "conversation.created"
