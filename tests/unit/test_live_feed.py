from __future__ import annotations

import json
import uuid
from datetime import timezone
from decimal import Decimal

import pytest

from market_chat.domain.events.message_created import MessageCreated
from market_chat.domain.value_objects.enums import FeedEventType
from market_chat.infrastructure.bus.serializer import deserialize_event, serialize_event
from market_chat.infrastructure.feed.memory import InMemoryLiveFeed
from tests.conftest import T0, make_message


@pytest.mark.asyncio
async def test_publish_reaches_each_subscriber_once():
    feed = InMemoryLiveFeed()
    msg = make_message()
    a, b, other = [], [], []
    await feed.subscribe(msg.conversation_id, a.append)
    await feed.subscribe(msg.conversation_id, b.append)
    await feed.subscribe(uuid.uuid4(), other.append)

    payload = MessageCreated(message=msg).to_payload()
    await feed.publish("ignored", FeedEventType.MESSAGE_CREATED, payload)

    assert a == [msg]
    assert b == [msg]
    assert other == []


@pytest.mark.asyncio
async def test_closed_subscription_gets_nothing():
    feed = InMemoryLiveFeed()
    msg = make_message()
    seen = []
    sub = await feed.subscribe(msg.conversation_id, seen.append)

    sub.close()
    sub.close()

    assert sub.active is False
    assert feed.deliver(msg) == 0
    assert seen == []


@pytest.mark.asyncio
async def test_failing_observer_does_not_block_others():
    feed = InMemoryLiveFeed()
    msg = make_message()
    seen = []

    def broken(_message):
        raise RuntimeError("observer bug")

    await feed.subscribe(msg.conversation_id, broken)
    await feed.subscribe(msg.conversation_id, seen.append)

    assert feed.deliver(msg) == 1
    assert seen == [msg]


@pytest.mark.asyncio
async def test_other_event_types_are_not_delivered():
    feed = InMemoryLiveFeed()
    seen = []
    cid = uuid.uuid4()
    await feed.subscribe(cid, seen.append)

    await feed.publish("fanout", FeedEventType.CONVERSATION_CREATED, {"conversation_id": str(cid)})

    assert seen == []


@pytest.mark.asyncio
async def test_disconnect_reports_channel_error():
    feed = InMemoryLiveFeed()
    cid = uuid.uuid4()
    errors = []
    await feed.subscribe(cid, lambda m: None, on_error=errors.append)

    feed.disconnect(cid, "redis gone")

    assert [e.detail for e in errors] == ["redis gone"]


def test_message_created_payload_parses_back():
    msg = make_message(content="Still for sale?", created_at=T0)
    event = MessageCreated(message=msg)

    payload = json.loads(serialize_event(event.event_type, event.to_payload()))["data"]

    assert payload["message"]["created_at"] == "2024-03-04T12:00:00+00:00"
    assert MessageCreated.from_payload(payload).message == msg
    assert event.conversation_id == msg.conversation_id


def test_serializer_envelope():
    cid = uuid.uuid4()
    raw = serialize_event(
        FeedEventType.CONVERSATION_CREATED,
        {"conversation_id": cid, "at": T0.astimezone(timezone.utc), "price": Decimal("9.50")},
    )

    event_type, data = deserialize_event(raw)

    assert event_type == "conversation.created"
    assert data == {"conversation_id": str(cid), "at": T0.isoformat(), "price": "9.50"}
