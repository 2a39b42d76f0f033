from __future__ import annotations

from typing import Callable, Protocol
from uuid import UUID

from market_chat.application.exceptions import ChannelError
from market_chat.domain.entities.message import Message

FeedCallback = Callable[[Message], None]
FeedErrorCallback = Callable[[ChannelError], None]


class Subscription(Protocol):
    @property
    def active(self) -> bool: ...

    def close(self) -> None:
        """Stop delivery. No callback fires after this returns."""
        ...


class LiveFeed(Protocol):
    """Per-conversation push channel of newly appended messages.

    At-least-once, fire-and-forget, no replay: after a gap the observer
    re-runs ``list_messages`` to resynchronize.
    """

    async def subscribe(
        self,
        conversation_id: UUID,
        callback: FeedCallback,
        *,
        on_error: FeedErrorCallback | None = None,
    ) -> Subscription: ...
