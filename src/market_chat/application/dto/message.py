from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from market_chat.domain.entities.message import Message


@dataclass(slots=True)
class DateGroup:
    """Consecutive messages sharing one calendar date in the viewer's zone."""

    day: date
    label: str
    messages: list[Message] = field(default_factory=list)
