"""Import all models so Base.metadata sees every owned table."""
from market_chat.infrastructure.db.models.catalog import (
    ListingModel,
    ListingPhotoModel,
    ProfileModel,
)
from market_chat.infrastructure.db.models.conversation import ConversationModel
from market_chat.infrastructure.db.models.message import MessageModel
from market_chat.infrastructure.db.models.outbox import OutboxMessageModel

__all__ = [
    "ConversationModel",
    "ListingModel",
    "ListingPhotoModel",
    "MessageModel",
    "OutboxMessageModel",
    "ProfileModel",
]
