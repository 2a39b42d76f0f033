"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client -> Server."""

    type: str  # ping | subscribe | unsubscribe | message.send | mark_read
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server -> Client."""

    type: str  # pong | subscribed | unsubscribed | message.created | conversation.created | error
    data: dict[str, Any] = {}


def error_frame(code: str, detail: str = "", **extra: Any) -> str:
    return WsOutbound(type="error", data={"code": code, "detail": detail, **extra}).model_dump_json()
