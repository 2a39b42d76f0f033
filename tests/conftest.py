"""Shared test fixtures."""
from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable
from uuid import UUID

import pytest

from market_chat.application.dto.conversation import (
    ConversationStats,
    ListingSnippet,
    ProfileSnippet,
)
from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import ConflictError
from market_chat.application.repositories.outbox import OutboxRecord
from market_chat.domain.entities.conversation import Conversation
from market_chat.domain.entities.message import Message
from market_chat.services import message_service

BUYER_ID = "buyer-1"
SELLER_ID = "seller-1"
T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def buyer() -> Principal:
    return Principal(user_id=BUYER_ID)


@pytest.fixture
def seller() -> Principal:
    return Principal(user_id=SELLER_ID)


@pytest.fixture
def stranger() -> Principal:
    return Principal(user_id="stranger-9")


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    listing_id: UUID | None = None,
    buyer_id: str = BUYER_ID,
    seller_id: str = SELLER_ID,
    created_at: datetime = T0,
) -> Conversation:
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        listing_id=listing_id or uuid.uuid4(),
        buyer_id=buyer_id,
        seller_id=seller_id,
        created_at=created_at,
    )


def make_message(
    *,
    conversation_id: UUID | None = None,
    sender_id: str = BUYER_ID,
    content: str = "hello",
    created_at: datetime = T0,
    is_read: bool = False,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        conversation_id=conversation_id or uuid.uuid4(),
        sender_id=sender_id,
        content=content,
        created_at=created_at,
        is_read=is_read,
    )


class FixedClock:
    def __init__(self, now: datetime = T0) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    def add(self, conversation: Conversation) -> Conversation:
        self._store[conversation.id] = conversation
        return conversation

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def get_by_listing_and_buyer(self, listing_id: UUID, buyer_id: str) -> Conversation | None:
        for c in self._store.values():
            if c.listing_id == listing_id and c.buyer_id == buyer_id:
                return c
        return None

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        found = [c for c in self._store.values() if c.is_participant(user_id)]
        return sorted(found, key=lambda c: c.created_at, reverse=True)


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader
    fail_with: Exception | None = None

    async def create(self, conversation: Conversation) -> Conversation:
        if self.fail_with is not None:
            raise self.fail_with
        for c in self._reader._store.values():
            if c.listing_id == conversation.listing_id and c.buyer_id == conversation.buyer_id:
                raise ConflictError("Conversation already exists")
        return self._reader.add(conversation)


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    def add(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def _for(self, conversation_id: UUID) -> list[Message]:
        found = [m for m in self._messages if m.conversation_id == conversation_id]
        return sorted(found, key=lambda m: (m.created_at, m.id))

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        return self._for(conversation_id)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        for m in self._messages:
            if m.id == message_id:
                return m
        return None

    async def latest_created_at(self, conversation_id: UUID) -> datetime | None:
        history = self._for(conversation_id)
        return history[-1].created_at if history else None

    async def stats_for_conversations(
        self, conversation_ids: list[UUID], reader_id: str,
    ) -> dict[UUID, ConversationStats]:
        stats: dict[UUID, ConversationStats] = {}
        for cid in conversation_ids:
            history = self._for(cid)
            if not history:
                continue
            unread = sum(1 for m in history if not m.is_read and m.sender_id != reader_id)
            stats[cid] = ConversationStats(cid, history[-1], unread)
        return stats

    async def count_unread(self, conversation_ids: list[UUID], reader_id: str) -> int:
        return sum(
            1 for m in self._messages
            if m.conversation_id in conversation_ids and not m.is_read and m.sender_id != reader_id
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def append(self, message: Message) -> Message:
        return self._reader.add(message)

    async def mark_read(self, conversation_id: UUID, reader_id: str) -> int:
        updated = 0
        for i, m in enumerate(self._reader._messages):
            if m.conversation_id == conversation_id and m.sender_id != reader_id and not m.is_read:
                self._reader._messages[i] = dataclasses.replace(m, is_read=True)
                updated += 1
        return updated

    async def mark_one_read(self, message_id: UUID) -> bool:
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id and not m.is_read:
                self._reader._messages[i] = dataclasses.replace(m, is_read=True)
                return True
        return False


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    _next_id: int = 1

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({
            "id": self._next_id,
            "event_type": event_type,
            "payload": payload,
            "attempts": 0,
            "status": "pending",
            "last_error": None,
        })
        self._next_id += 1

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        pending = [r for r in self._records if r["status"] in ("pending", "failed")]
        return [
            OutboxRecord(r["id"], r["event_type"], r["payload"], r["attempts"])
            for r in pending[:batch_size]
        ]

    def _get(self, record_id: int) -> dict[str, Any]:
        return next(r for r in self._records if r["id"] == record_id)

    async def mark_sent(self, ids: list[int]) -> None:
        for record_id in ids:
            self._get(record_id)["status"] = "sent"

    async def mark_failed(self, record_id: int, next_retry_at: datetime, error: str | None = None) -> None:
        record = self._get(record_id)
        record["status"] = "failed"
        record["attempts"] += 1
        record["last_error"] = error

    async def mark_dead(self, record_id: int) -> None:
        self._get(record_id)["status"] = "dead"


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False
    _rolled_back: bool = False

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        self._rolled_back = True


@dataclass
class FakeCatalog:
    _listings: dict[UUID, ListingSnippet] = field(default_factory=dict)

    def add(self, listing: ListingSnippet) -> ListingSnippet:
        self._listings[listing.id] = listing
        return listing

    async def get_snippets(self, listing_ids: Iterable[UUID]) -> dict[UUID, ListingSnippet]:
        return {i: self._listings[i] for i in listing_ids if i in self._listings}


@dataclass
class FakeProfiles:
    _profiles: dict[str, ProfileSnippet] = field(default_factory=dict)

    def add(self, profile: ProfileSnippet) -> ProfileSnippet:
        self._profiles[profile.id] = profile
        return profile

    async def get_snippets(self, user_ids: Iterable[str]) -> dict[str, ProfileSnippet]:
        return {i: self._profiles[i] for i in user_ids if i in self._profiles}


class FakeMessageStore:
    """MessageStore running the real services over a shared FakeUoW.

    ``fail_next[name]`` makes the next call of that operation raise.
    """

    def __init__(self, principal: Principal, uow: FakeUoW, clock: FixedClock | None = None) -> None:
        self.principal = principal
        self.uow = uow
        self.clock = clock
        self.fail_next: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        exc = self.fail_next.pop(name, None)
        if exc is not None:
            raise exc

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        self._check("list_messages")
        return await message_service.list_messages(conversation_id, self.principal, self.uow)

    async def append_message(self, conversation_id: UUID, content: str) -> Message:
        self._check("append_message")
        return await message_service.append_message(
            conversation_id, self.principal, content, self.uow, self.clock,
        )

    async def mark_read(self, conversation_id: UUID) -> int:
        self._check("mark_read")
        return await message_service.mark_read(conversation_id, self.principal, self.uow)

    async def mark_one_read(self, message_id: UUID) -> bool:
        self._check("mark_one_read")
        return await message_service.mark_one_read(message_id, self.principal, self.uow)


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def conversation(uow: FakeUoW) -> Conversation:
    return uow.conversations.add(make_conversation())
