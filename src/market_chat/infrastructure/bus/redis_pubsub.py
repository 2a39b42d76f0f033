"""Redis Pub/Sub: publish side + subscriber background task."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from market_chat.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5.0


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        raw = serialize_event(event_type, payload)
        await self._redis.publish(channel, raw)


OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]
OnErrorCallback = Callable[[Exception], None]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel (or glob pattern) and dispatches events.

    A dropped connection is reported through ``on_error`` and the listener
    resubscribes after ``reconnect_delay``. Messages published during the gap
    are lost; Redis Pub/Sub has no replay.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
        *,
        pattern: bool = False,
        on_error: OnErrorCallback | None = None,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._pattern = pattern
        self._on_error = on_error
        self._reconnect_delay = reconnect_delay
        self._ready = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def channel(self) -> str:
        return self._channel

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"redis-pubsub-{self._channel}")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def wait_ready(self, timeout: float) -> bool:
        """Wait until the channel subscription is confirmed by the server."""
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except TimeoutError:
            return False
        return True

    def cancel(self) -> None:
        """Request shutdown without waiting for the task to finish."""
        if self._task and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped on channel=%s", self._channel)

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
            except asyncio.CancelledError:
                raise
            except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
                self._ready.clear()
                logger.warning(
                    "Pub/Sub connection lost on %s, retrying in %.1fs",
                    self._channel, self._reconnect_delay, exc_info=True,
                )
                if self._on_error is not None:
                    self._on_error(exc)
                await asyncio.sleep(self._reconnect_delay)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        if self._pattern:
            await pubsub.psubscribe(self._channel)
        else:
            await pubsub.subscribe(self._channel)
        self._ready.set()
        try:
            async for message in pubsub.listen():
                if message["type"] not in ("message", "pmessage"):
                    continue
                try:
                    event_type, data = deserialize_event(message["data"])
                    await self._callback(event_type, data)
                except Exception:
                    logger.exception("Error processing pubsub message on %s", self._channel)
        finally:
            self._ready.clear()
            try:
                if self._pattern:
                    await pubsub.punsubscribe(self._channel)
                else:
                    await pubsub.unsubscribe(self._channel)
                await pubsub.aclose()
            except (RedisConnectionError, OSError):
                logger.debug("Pub/Sub cleanup failed on %s", self._channel, exc_info=True)
