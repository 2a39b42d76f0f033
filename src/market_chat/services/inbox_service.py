"""Conversation list: per-thread summaries, ranking and unread totals."""
from __future__ import annotations

from datetime import datetime, timezone

from market_chat.application.dto.conversation import (
    ConversationStats,
    ConversationSummary,
    ListingSnippet,
    ProfileSnippet,
)
from market_chat.application.dto.principal import Principal
from market_chat.application.policies.permissions import require_principal
from market_chat.application.ports.catalog import ListingCatalog, ProfileDirectory
from market_chat.application.uow import UnitOfWork


def rank_summaries(summaries: list[ConversationSummary]) -> list[ConversationSummary]:
    """Most recently active first.

    A conversation without messages ranks by its own creation time.
    """
    ordered = sorted(summaries, key=lambda s: str(s.conversation.id))
    return sorted(ordered, key=lambda s: s.last_activity_at, reverse=True)


async def list_conversation_summaries(
    principal: Principal | None,
    uow: UnitOfWork,
    catalog: ListingCatalog,
    profiles: ProfileDirectory,
) -> list[ConversationSummary]:
    user_id = require_principal(principal).user_id
    conversations = await uow.conversations.list_for_user(user_id)
    if not conversations:
        return []

    stats = await uow.messages.stats_for_conversations(
        [c.id for c in conversations], user_id,
    )
    listings = await catalog.get_snippets({c.listing_id for c in conversations})
    people = await profiles.get_snippets({c.other_participant(user_id) for c in conversations})

    summaries: list[ConversationSummary] = []
    for conv in conversations:
        other_id = conv.other_participant(user_id)
        conv_stats = stats.get(conv.id) or ConversationStats(conv.id, None, 0)
        summaries.append(
            ConversationSummary(
                conversation=conv,
                other_participant=people.get(other_id) or ProfileSnippet(id=other_id),
                listing=listings.get(conv.listing_id) or ListingSnippet(id=conv.listing_id),
                last_message=conv_stats.last_message,
                unread_count=max(conv_stats.unread_count, 0),
            )
        )
    return rank_summaries(summaries)


async def count_unread_total(principal: Principal | None, uow: UnitOfWork) -> int:
    """Unread messages addressed to the user across all conversations (nav badge)."""
    user_id = require_principal(principal).user_id
    conversations = await uow.conversations.list_for_user(user_id)
    if not conversations:
        return 0
    return await uow.messages.count_unread([c.id for c in conversations], user_id)


def format_time_ago(ts: datetime, now: datetime | None = None) -> str:
    """Compact relative time for a conversation row: Now, 5m, 3h, 2d or "Mar 3"."""
    now = now or datetime.now(timezone.utc)
    minutes = int((now - ts).total_seconds() // 60)
    if minutes < 1:
        return "Now"
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    days = hours // 24
    if days < 7:
        return f"{days}d"
    return f"{ts:%b} {ts.day}"
