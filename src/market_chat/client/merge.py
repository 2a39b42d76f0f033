"""Pure helpers maintaining a thread's ordered, id-deduplicated message list."""
from __future__ import annotations

import bisect
from datetime import datetime, tzinfo
from typing import Iterable
from uuid import UUID

from market_chat.application.dto.message import DateGroup
from market_chat.domain.entities.message import Message


def _sort_key(message: Message) -> tuple[datetime, UUID]:
    # same tie-break as the store's (created_at, id) ordering
    return message.created_at, message.id


def merge(current: list[Message], incoming: Message) -> list[Message]:
    """Insert ``incoming`` in time order unless a message with its id is present.

    Returns ``current`` itself when the message is a duplicate, otherwise a
    new list. Applying the same messages in any order yields the same list.
    """
    if any(m.id == incoming.id for m in current):
        return current
    pos = bisect.bisect_right(current, _sort_key(incoming), key=_sort_key)
    return [*current[:pos], incoming, *current[pos:]]


def merge_many(current: list[Message], incoming: Iterable[Message]) -> list[Message]:
    merged = current
    for message in incoming:
        merged = merge(merged, message)
    return merged


def date_label(day: datetime) -> str:
    """Section header such as "Monday, Mar 3"."""
    return f"{day:%A}, {day:%b} {day.day}"


def group_by_date(messages: list[Message], tz: tzinfo | None = None) -> list[DateGroup]:
    """Split an ordered list into consecutive calendar-date groups in the viewer's zone."""
    groups: list[DateGroup] = []
    for message in messages:
        local = message.created_at.astimezone(tz)
        if groups and groups[-1].day == local.date():
            groups[-1].messages.append(message)
        else:
            groups.append(DateGroup(day=local.date(), label=date_label(local), messages=[message]))
    return groups
