from __future__ import annotations

from market_chat.domain.entities.conversation import Conversation
from market_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        listing_id=model.listing_id,
        buyer_id=model.buyer_id,
        seller_id=model.seller_id,
        created_at=model.created_at,
    )


def entity_to_values(entity: Conversation) -> dict:
    return {
        "id": entity.id,
        "listing_id": entity.listing_id,
        "buyer_id": entity.buyer_id,
        "seller_id": entity.seller_id,
        "created_at": entity.created_at,
    }
