"""Live feed over the per-conversation Redis channels written by the outbox worker."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import redis.asyncio as aioredis

from market_chat.application.exceptions import ChannelError
from market_chat.application.ports.feed import FeedCallback, FeedErrorCallback
from market_chat.config import settings
from market_chat.domain.events.message_created import MessageCreated
from market_chat.domain.value_objects.enums import FeedEventType
from market_chat.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber

logger = logging.getLogger(__name__)

SUBSCRIBE_TIMEOUT_SECONDS = 5.0


class RedisSubscription:
    def __init__(
        self,
        conversation_id: UUID,
        callback: FeedCallback,
        on_error: FeedErrorCallback | None,
    ) -> None:
        self.conversation_id = conversation_id
        self._callback = callback
        self._on_error = on_error
        self._active = True
        self.subscriber: RedisPubSubSubscriber | None = None

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        self._active = False
        if self.subscriber is not None:
            self.subscriber.cancel()

    async def handle_event(self, event_type: str, data: dict[str, Any]) -> None:
        if not self._active or event_type != FeedEventType.MESSAGE_CREATED:
            return
        message = MessageCreated.from_payload(data).message
        if message.conversation_id != self.conversation_id:
            return
        self._callback(message)

    def handle_error(self, exc: Exception) -> None:
        if self._active and self._on_error is not None:
            self._on_error(ChannelError(f"feed connection lost: {exc}"))


class RedisLiveFeed:
    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def subscribe(
        self,
        conversation_id: UUID,
        callback: FeedCallback,
        *,
        on_error: FeedErrorCallback | None = None,
    ) -> RedisSubscription:
        sub = RedisSubscription(conversation_id, callback, on_error)
        subscriber = RedisPubSubSubscriber(
            self._redis,
            settings.feed_channel(conversation_id),
            sub.handle_event,
            on_error=sub.handle_error,
        )
        sub.subscriber = subscriber
        await subscriber.start()
        if not await subscriber.wait_ready(SUBSCRIBE_TIMEOUT_SECONDS):
            sub.close()
            raise ChannelError(f"could not subscribe to conversation {conversation_id}")
        return sub
