from __future__ import annotations

import asyncio
import uuid

import pytest

from market_chat.application.dto.conversation import ListingSnippet, ProfileSnippet
from market_chat.application.exceptions import (
    AuthorizationError,
    ConversationCreateError,
    NotFoundError,
    ValidationError,
)
from market_chat.domain.value_objects.enums import FeedEventType, ParticipantRole
from market_chat.services import conversation_service
from tests.conftest import (
    SELLER_ID,
    FakeCatalog,
    FakeConversationReader,
    FakeProfiles,
    FakeUoW,
    make_conversation,
)


@pytest.mark.asyncio
async def test_get_or_create_creates_new(buyer, clock):
    uow = FakeUoW()
    listing_id = uuid.uuid4()

    conv, created = await conversation_service.get_or_create_conversation(
        listing_id, SELLER_ID, buyer, uow, clock,
    )

    assert created is True
    assert conv.listing_id == listing_id
    assert conv.buyer_id == buyer.user_id
    assert conv.seller_id == SELLER_ID
    assert conv.created_at == clock.now()
    assert uow._committed is True


@pytest.mark.asyncio
async def test_get_or_create_writes_outbox(buyer):
    uow = FakeUoW()

    conv, _ = await conversation_service.get_or_create_conversation(
        uuid.uuid4(), SELLER_ID, buyer, uow,
    )

    assert len(uow.outbox._records) == 1
    record = uow.outbox._records[0]
    assert record["event_type"] == FeedEventType.CONVERSATION_CREATED
    assert record["payload"]["conversation_id"] == str(conv.id)
    assert record["payload"]["seller_id"] == SELLER_ID


@pytest.mark.asyncio
async def test_message_seller_twice_returns_same_conversation(buyer):
    uow = FakeUoW()
    listing_id = uuid.uuid4()

    first, created1 = await conversation_service.get_or_create_conversation(
        listing_id, SELLER_ID, buyer, uow,
    )
    uow._committed = False
    second, created2 = await conversation_service.get_or_create_conversation(
        listing_id, SELLER_ID, buyer, uow,
    )

    assert (created1, created2) == (True, False)
    assert first.id == second.id
    assert len(uow.conversations._store) == 1
    assert uow._committed is False


@pytest.mark.asyncio
async def test_concurrent_creates_yield_one_row(buyer):
    uow = FakeUoW()
    listing_id = uuid.uuid4()

    results = await asyncio.gather(
        conversation_service.get_or_create_conversation(listing_id, SELLER_ID, buyer, uow),
        conversation_service.get_or_create_conversation(listing_id, SELLER_ID, buyer, uow),
    )

    assert results[0][0].id == results[1][0].id
    assert len(uow.conversations._store) == 1


class _RacingReader(FakeConversationReader):
    """Misses the first lookup, as if another request inserted in between."""

    def __init__(self) -> None:
        super().__init__()
        self._lookups = 0

    async def get_by_listing_and_buyer(self, listing_id, buyer_id):
        self._lookups += 1
        if self._lookups == 1:
            return None
        return await super().get_by_listing_and_buyer(listing_id, buyer_id)


@pytest.mark.asyncio
async def test_lost_race_returns_winner(buyer):
    reader = _RacingReader()
    uow = FakeUoW(conversations=reader)
    winner = reader.add(make_conversation(buyer_id=buyer.user_id))

    conv, created = await conversation_service.get_or_create_conversation(
        winner.listing_id, SELLER_ID, buyer, uow,
    )

    assert created is False
    assert conv.id == winner.id
    assert uow._rolled_back is True
    assert uow.outbox._records == []
    assert len(reader._store) == 1


@pytest.mark.asyncio
async def test_create_failure_raises_conversation_create_error(buyer):
    uow = FakeUoW()
    uow.conversations_w.fail_with = RuntimeError("db down")

    with pytest.raises(ConversationCreateError):
        await conversation_service.get_or_create_conversation(
            uuid.uuid4(), SELLER_ID, buyer, uow,
        )

    assert uow._rolled_back is True
    assert uow._committed is False


@pytest.mark.asyncio
async def test_own_listing_rejected(seller):
    uow = FakeUoW()

    with pytest.raises(ValidationError):
        await conversation_service.get_or_create_conversation(
            uuid.uuid4(), seller.user_id, seller, uow,
        )

    assert uow.conversations._store == {}
    assert uow.outbox._records == []


@pytest.mark.asyncio
async def test_missing_seller_rejected(buyer):
    with pytest.raises(ValidationError):
        await conversation_service.get_or_create_conversation(
            uuid.uuid4(), "", buyer, FakeUoW(),
        )


@pytest.mark.asyncio
async def test_unauthenticated_rejected():
    with pytest.raises(AuthorizationError):
        await conversation_service.get_or_create_conversation(
            uuid.uuid4(), SELLER_ID, None, FakeUoW(),
        )


@pytest.mark.asyncio
async def test_get_conversation_for_participants(uow, conversation, buyer, seller):
    assert await conversation_service.get_conversation(conversation.id, buyer, uow) == conversation
    assert await conversation_service.get_conversation(conversation.id, seller, uow) == conversation


@pytest.mark.asyncio
async def test_get_conversation_forbidden_for_stranger(uow, conversation, stranger):
    with pytest.raises(AuthorizationError):
        await conversation_service.get_conversation(conversation.id, stranger, uow)


@pytest.mark.asyncio
async def test_get_conversation_not_found(uow, buyer):
    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation(uuid.uuid4(), buyer, uow)


@pytest.mark.asyncio
async def test_thread_context_for_buyer(uow, conversation, buyer):
    catalog = FakeCatalog()
    catalog.add(ListingSnippet(id=conversation.listing_id, title="Oak table", photo_url="http://x/p.jpg"))
    profiles = FakeProfiles()
    profiles.add(ProfileSnippet(id=SELLER_ID, display_name="Sam"))

    ctx = await conversation_service.get_thread_context(
        conversation.id, buyer, uow, catalog, profiles,
    )

    assert ctx.conversation == conversation
    assert ctx.other_participant.display_name == "Sam"
    assert ctx.listing.title == "Oak table"
    assert ctx.my_role == ParticipantRole.BUYER


@pytest.mark.asyncio
async def test_thread_context_falls_back_when_lookups_miss(uow, conversation, seller):
    ctx = await conversation_service.get_thread_context(
        conversation.id, seller, uow, FakeCatalog(), FakeProfiles(),
    )

    assert ctx.other_participant.id == conversation.buyer_id
    assert ctx.other_participant.display_name is None
    assert ctx.listing.title == "Item"
    assert ctx.my_role == ParticipantRole.SELLER
