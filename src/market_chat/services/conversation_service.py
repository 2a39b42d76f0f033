from __future__ import annotations

import logging
import uuid

from market_chat.application.dto.conversation import (
    ListingSnippet,
    ProfileSnippet,
    ThreadContext,
)
from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import (
    ConflictError,
    ConversationCreateError,
    ValidationError,
)
from market_chat.application.policies.permissions import (
    assert_conversation_access,
    participant_role,
    require_principal,
)
from market_chat.application.ports.catalog import ListingCatalog, ProfileDirectory
from market_chat.application.ports.clock import Clock, SystemClock
from market_chat.application.uow import UnitOfWork
from market_chat.domain.entities.conversation import Conversation
from market_chat.domain.events.conversation_created import ConversationCreated

logger = logging.getLogger(__name__)


async def get_or_create_conversation(
    listing_id: uuid.UUID,
    seller_id: str,
    principal: Principal | None,
    uow: UnitOfWork,
    clock: Clock | None = None,
) -> tuple[Conversation, bool]:
    """Return the single conversation for (listing, buyer), creating it on first use.

    The caller is the buyer. Returns (conversation, created). A concurrent
    creator losing the (listing_id, buyer_id) uniqueness race re-reads and
    returns the winner's row instead of failing.
    """
    buyer_id = require_principal(principal).user_id
    if not seller_id:
        raise ValidationError("Seller is required")
    if buyer_id == seller_id:
        raise ValidationError("You cannot message yourself about your own listing")

    existing = await uow.conversations.get_by_listing_and_buyer(listing_id, buyer_id)
    if existing is not None:
        return existing, False

    conversation = Conversation(
        id=uuid.uuid4(),
        listing_id=listing_id,
        buyer_id=buyer_id,
        seller_id=seller_id,
        created_at=(clock or SystemClock()).now(),
    )
    try:
        conversation = await uow.conversations_w.create(conversation)
        event = ConversationCreated(
            conversation_id=conversation.id,
            listing_id=listing_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
        )
        await uow.outbox.add(event.event_type, event.to_payload())
        await uow.commit()
    except ConflictError:
        await uow.rollback()
        winner = await uow.conversations.get_by_listing_and_buyer(listing_id, buyer_id)
        if winner is None:
            raise ConversationCreateError() from None
        logger.info(
            "Lost create race for listing=%s buyer=%s, using %s",
            listing_id, buyer_id, winner.id,
        )
        return winner, False
    except Exception as exc:
        await uow.rollback()
        logger.exception("Conversation create failed for listing=%s", listing_id)
        raise ConversationCreateError() from exc

    logger.info("Created conversation %s for listing %s", conversation.id, listing_id)
    return conversation, True


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal | None,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal, conversation)


async def get_thread_context(
    conversation_id: uuid.UUID,
    principal: Principal | None,
    uow: UnitOfWork,
    catalog: ListingCatalog,
    profiles: ProfileDirectory,
) -> ThreadContext:
    conversation = await get_conversation(conversation_id, principal, uow)
    principal = require_principal(principal)
    other_id = conversation.other_participant(principal.user_id)

    listings = await catalog.get_snippets([conversation.listing_id])
    people = await profiles.get_snippets([other_id])
    return ThreadContext(
        conversation=conversation,
        other_participant=people.get(other_id) or ProfileSnippet(id=other_id),
        listing=listings.get(conversation.listing_id) or ListingSnippet(id=conversation.listing_id),
        my_role=participant_role(principal, conversation),
    )
