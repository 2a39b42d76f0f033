from __future__ import annotations

import uuid

import pytest

from market_chat.config import settings
from market_chat.domain.events.conversation_created import ConversationCreated
from market_chat.domain.events.message_created import MessageCreated
from market_chat.workers.outbox_worker import channel_for, process_batch
from tests.conftest import FakeUoW, make_message


class RecordingPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published: list[tuple[str, str, dict]] = []

    async def publish(self, channel, event_type, payload):
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, event_type, payload))


def test_channel_routing():
    cid = uuid.uuid4()
    msg_event = MessageCreated(message=make_message(conversation_id=cid))
    conv_event = ConversationCreated(cid, uuid.uuid4(), "b", "s")

    assert channel_for(msg_event.event_type, msg_event.to_payload()) == f"{settings.REDIS_FEED_CHANNEL_PREFIX}{cid}"
    assert channel_for(conv_event.event_type, conv_event.to_payload()) == settings.REDIS_PUBSUB_CHANNEL


@pytest.mark.asyncio
async def test_process_batch_publishes_and_marks_sent():
    uow = FakeUoW()
    event = MessageCreated(message=make_message())
    await uow.outbox.add(event.event_type, event.to_payload())
    publisher = RecordingPublisher()

    sent = await process_batch(uow, publisher)

    assert sent == 1
    assert publisher.published == [
        (settings.feed_channel(event.conversation_id), event.event_type, event.to_payload()),
    ]
    assert uow.outbox._records[0]["status"] == "sent"
    assert uow._committed is True
    assert await process_batch(uow, publisher) == 0


@pytest.mark.asyncio
async def test_process_batch_failure_schedules_retry():
    uow = FakeUoW()
    await uow.outbox.add("message.created", MessageCreated(message=make_message()).to_payload())

    sent = await process_batch(uow, RecordingPublisher(fail=True))

    record = uow.outbox._records[0]
    assert sent == 0
    assert record["status"] == "failed"
    assert record["attempts"] == 1
    assert record["last_error"] == "redis down"


@pytest.mark.asyncio
async def test_process_batch_gives_up_after_max_attempts():
    uow = FakeUoW()
    await uow.outbox.add("message.created", MessageCreated(message=make_message()).to_payload())
    uow.outbox._records[0]["attempts"] = settings.OUTBOX_MAX_ATTEMPTS
    publisher = RecordingPublisher()

    await process_batch(uow, publisher)

    assert uow.outbox._records[0]["status"] == "dead"
    assert publisher.published == []
