"""Outbox worker: polls committed feed events and publishes them to Redis Pub/Sub.

``message.created`` goes to the conversation's own channel, everything else
to the shared fan-out channel. One outbox record yields one publish.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import redis.asyncio as aioredis

from market_chat.application.ports.bus import EventPublisher
from market_chat.application.uow import UnitOfWork
from market_chat.config import settings
from market_chat.domain.value_objects.enums import FeedEventType
from market_chat.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from market_chat.infrastructure.db.uow import session_uow

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def _calc_backoff(attempts: int) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return datetime.now(timezone.utc) + timedelta(seconds=delay)


def channel_for(event_type: str, payload: dict[str, Any]) -> str:
    if event_type == FeedEventType.MESSAGE_CREATED:
        return settings.feed_channel(payload["conversation_id"])
    return settings.REDIS_PUBSUB_CHANNEL


async def process_batch(uow: UnitOfWork, publisher: EventPublisher) -> int:
    """Publish one batch of pending records. Returns how many were sent."""
    batch = await uow.outbox.fetch_pending(settings.OUTBOX_BATCH_SIZE)
    if not batch:
        return 0

    sent_ids: list[int] = []
    for record in batch:
        if record.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
            logger.warning("Outbox record %d exceeded max attempts, giving up", record.id)
            await uow.outbox.mark_dead(record.id)
            continue
        try:
            await publisher.publish(
                channel_for(record.event_type, record.payload),
                record.event_type,
                record.payload,
            )
            sent_ids.append(record.id)
        except Exception as exc:
            logger.exception("Failed to publish outbox record %d", record.id)
            await uow.outbox.mark_failed(record.id, _calc_backoff(record.attempts), str(exc))

    if sent_ids:
        await uow.outbox.mark_sent(sent_ids)

    await uow.commit()
    if sent_ids:
        logger.info("Published %d outbox records", len(sent_ids))
    return len(sent_ids)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                async with session_uow() as uow:
                    await process_batch(uow, publisher)
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
