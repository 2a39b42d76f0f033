"""Client-side orchestrator for one open conversation."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import tzinfo
from types import TracebackType
from typing import Any, Awaitable, Callable, Self
from uuid import UUID

from market_chat.application.dto.message import DateGroup
from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import (
    AppError,
    ChannelError,
    TransientStoreError,
)
from market_chat.application.policies.permissions import require_principal
from market_chat.application.ports.feed import LiveFeed, Subscription
from market_chat.application.ports.store import MessageStore
from market_chat.client.merge import group_by_date, merge, merge_many
from market_chat.domain.entities.message import Message
from market_chat.services.message_service import trim, validate_content

logger = logging.getLogger(__name__)


class ThreadSession:
    """Owns the in-memory message list of one conversation.

    History, send confirmations and live feed notifications all go through
    :func:`merge`, so they can arrive in any interleaving. Everything runs
    on one event loop; no locking is needed.
    """

    def __init__(
        self,
        conversation_id: UUID,
        principal: Principal,
        store: MessageStore,
        feed: LiveFeed,
    ) -> None:
        self.conversation_id = conversation_id
        self.principal = require_principal(principal)
        self._store = store
        self._feed = feed
        self._subscription: Subscription | None = None
        self._read_tasks: set[asyncio.Task[Any]] = set()
        self._closed = False
        self._sends_in_flight = 0

        self.messages: list[Message] = []
        self.draft = ""
        self.send_error: str | None = None
        self.load_error: str | None = None
        self.channel_error: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        """True while any send is awaiting the store."""
        return not self._closed and self._sends_in_flight > 0

    @property
    def unread_count(self) -> int:
        me = self.principal.user_id
        return sum(1 for m in self.messages if not m.is_read and m.sender_id != me)

    async def open(self) -> None:
        """Subscribe, seed from history, then mark the thread read.

        The feed is joined before history is fetched so nothing sent in
        between is missed; overlaps are absorbed by the merge. Calling
        ``open`` again after a load error retries the load.
        """
        self._ensure_open()
        if self._subscription is None:
            try:
                self._subscription = await self._feed.subscribe(
                    self.conversation_id,
                    self.on_feed_message,
                    on_error=self._on_channel_error,
                )
            except ChannelError as exc:
                self._on_channel_error(exc)

        await self._load_history()
        if self._closed:
            return
        me = self.principal.user_id
        unread = {m.id for m in self.messages if m.sender_id != me and not m.is_read}
        self._fire_and_forget(
            self._store.mark_read(self.conversation_id),
            lambda: self._mark_local_read(unread),
            "mark_read",
        )

    async def resync(self) -> None:
        """Re-run the history load after a feed gap."""
        self._ensure_open()
        await self._load_history()
        if not self._closed:
            self.channel_error = None

    async def send(self, text: str) -> Message | None:
        """Append ``text`` and merge the confirmed message.

        Empty input raises ValidationError before any store call. On failure
        nothing is inserted, ``draft`` keeps the text and ``send_error`` is set.
        Returns None if the session was closed while the call was in flight.
        """
        self._ensure_open()
        content = trim(validate_content(text))

        self.draft = text
        self.send_error = None
        self._sends_in_flight += 1
        try:
            message = await self._store.append_message(self.conversation_id, content)
        except AppError as exc:
            self._send_failed(text, exc.detail or "Message not sent")
            raise
        except Exception as exc:
            self._send_failed(text, "Message not sent")
            raise TransientStoreError("Message not sent") from exc
        finally:
            self._sends_in_flight -= 1

        if self._closed:
            return None
        # a newer draft typed while this send was in flight stays
        if self.draft == text:
            self.draft = ""
        self.messages = merge(self.messages, message)
        return message

    def on_feed_message(self, message: Message) -> None:
        """Live feed callback. Late deliveries after close are ignored."""
        if self._closed or message.conversation_id != self.conversation_id:
            return
        before = self.messages
        self.messages = merge(self.messages, message)
        if self.messages is before:
            return
        if message.sender_id != self.principal.user_id and not message.is_read:
            self._fire_and_forget(
                self._store.mark_one_read(message.id),
                lambda: self._mark_local_read({message.id}),
                "mark_one_read",
            )

    def grouped(self, tz: tzinfo | None = None) -> list[DateGroup]:
        return group_by_date(self.messages, tz)

    def close(self) -> None:
        """Unsubscribe and drop state. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self.messages = []

    async def aclose(self) -> None:
        """Close, then let in-flight read receipts finish."""
        self.close()
        await self.drain()

    async def drain(self) -> None:
        if self._read_tasks:
            await asyncio.gather(*self._read_tasks, return_exceptions=True)

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _load_history(self) -> None:
        try:
            history = await self._store.list_messages(self.conversation_id)
        except AppError as exc:
            if isinstance(exc, TransientStoreError):
                self.load_error = exc.detail or "Could not load messages"
            raise
        except Exception as exc:
            self.load_error = "Could not load messages"
            raise TransientStoreError("Could not load messages") from exc
        if self._closed:
            return
        self.load_error = None
        self.messages = merge_many(self.messages, history)

    def _mark_local_read(self, message_ids: set[UUID]) -> None:
        """Flip only the messages the finished receipt covered."""
        if not message_ids:
            return
        self.messages = [
            dataclasses.replace(m, is_read=True) if m.id in message_ids and not m.is_read else m
            for m in self.messages
        ]

    def _send_failed(self, text: str, error: str) -> None:
        if self._closed:
            return
        self.draft = text
        self.send_error = error

    def _fire_and_forget(
        self,
        call: Awaitable[Any],
        on_success: Callable[[], None],
        what: str,
    ) -> None:
        task = asyncio.ensure_future(self._run_read_receipt(call, on_success, what))
        self._read_tasks.add(task)
        task.add_done_callback(self._read_tasks.discard)

    async def _run_read_receipt(
        self,
        call: Awaitable[Any],
        on_success: Callable[[], None],
        what: str,
    ) -> None:
        try:
            await call
        except asyncio.CancelledError:
            raise
        except Exception:
            # unread counts reconcile on the next open
            logger.warning("%s failed for conversation %s", what, self.conversation_id, exc_info=True)
            return
        if not self._closed:
            on_success()

    def _on_channel_error(self, error: ChannelError) -> None:
        logger.warning("Live feed error on %s: %s", self.conversation_id, error.detail)
        self.channel_error = error.detail or "Live updates unavailable"

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Thread session is closed")
