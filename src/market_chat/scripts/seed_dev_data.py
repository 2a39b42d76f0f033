"""Seed development data: one buyer/seller conversation about a listing."""
from __future__ import annotations

import asyncio
import logging
import uuid

from market_chat.application.dto.principal import Principal
from market_chat.infrastructure.db.uow import session_uow
from market_chat.services import conversation_service, message_service

logger = logging.getLogger(__name__)

BUYER = Principal(user_id="dev-buyer")
SELLER = Principal(user_id="dev-seller")
LISTING_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")


async def seed() -> None:
    async with session_uow() as uow:
        conv, created = await conversation_service.get_or_create_conversation(
            LISTING_ID, SELLER.user_id, BUYER, uow,
        )
        if not created:
            logger.info("Conversation %s already seeded", conv.id)
            return

        messages_data = [
            (BUYER, "Hi! Is the couch still available?"),
            (SELLER, "Yes, it is. Pickup only though."),
            (BUYER, "Great, could I come by Saturday morning?"),
        ]
        for sender, content in messages_data:
            await message_service.append_message(conv.id, sender, content, uow)

        logger.info("Seeded conversation %s with %d messages", conv.id, len(messages_data))


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed())


if __name__ == "__main__":
    main()
