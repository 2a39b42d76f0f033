"""In-process live feed: fan-out to the subscribers of one event loop."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from market_chat.application.exceptions import ChannelError
from market_chat.application.ports.feed import FeedCallback, FeedErrorCallback
from market_chat.domain.entities.message import Message
from market_chat.domain.events.message_created import MessageCreated
from market_chat.domain.value_objects.enums import FeedEventType

logger = logging.getLogger(__name__)


class LocalSubscription:
    def __init__(
        self,
        feed: InMemoryLiveFeed,
        conversation_id: UUID,
        callback: FeedCallback,
        on_error: FeedErrorCallback | None,
    ) -> None:
        self._feed = feed
        self.conversation_id = conversation_id
        self._callback = callback
        self._on_error = on_error
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if self._active:
            self._active = False
            self._feed._discard(self)

    def deliver(self, message: Message) -> bool:
        if not self._active:
            return False
        self._callback(message)
        return True

    def fail(self, error: ChannelError) -> None:
        if self._active and self._on_error is not None:
            self._on_error(error)


class InMemoryLiveFeed:
    """LiveFeed and EventPublisher for a single process.

    ``publish`` yields exactly one notification per subscriber that is
    registered at the moment of publishing.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[UUID, list[LocalSubscription]] = {}

    async def subscribe(
        self,
        conversation_id: UUID,
        callback: FeedCallback,
        *,
        on_error: FeedErrorCallback | None = None,
    ) -> LocalSubscription:
        sub = LocalSubscription(self, conversation_id, callback, on_error)
        self._subscriptions.setdefault(conversation_id, []).append(sub)
        return sub

    def subscriber_count(self, conversation_id: UUID) -> int:
        return len(self._subscriptions.get(conversation_id, []))

    def deliver(self, message: Message) -> int:
        delivered = 0
        for sub in list(self._subscriptions.get(message.conversation_id, [])):
            try:
                if sub.deliver(message):
                    delivered += 1
            except Exception:
                logger.exception("Feed observer failed for message %s", message.id)
        return delivered

    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        if event_type != FeedEventType.MESSAGE_CREATED:
            return
        self.deliver(MessageCreated.from_payload(payload).message)

    def disconnect(self, conversation_id: UUID, detail: str = "feed disconnected") -> None:
        """Report a dropped channel to every observer of the conversation."""
        error = ChannelError(detail)
        for sub in list(self._subscriptions.get(conversation_id, [])):
            sub.fail(error)

    def _discard(self, sub: LocalSubscription) -> None:
        subs = self._subscriptions.get(sub.conversation_id)
        if subs and sub in subs:
            subs.remove(sub)
            if not subs:
                del self._subscriptions[sub.conversation_id]
