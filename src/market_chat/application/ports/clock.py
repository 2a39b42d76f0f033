from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

_TICK = timedelta(microseconds=1)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def strictly_after(ts: datetime, previous: datetime | None) -> datetime:
    """Return ``ts``, nudged one tick past ``previous`` if the clock has not advanced."""
    if previous is not None and ts <= previous:
        return previous + _TICK
    return ts
