"""In-process WebSocket connection manager: the local end of the live feed."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import WebSocket

from market_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks sockets per principal and each socket's conversation subscriptions.

    Subscriptions are per socket, so a user with two open threads in two
    tabs gets each conversation's events only on the tab that asked.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._subscriptions: dict[UUID, set[WebSocket]] = {}

    async def connect(self, ws: WebSocket, principal_key: str) -> None:
        await ws.accept()
        self._connections.setdefault(principal_key, set()).add(ws)
        logger.debug("WS connected: %s (total=%d)", principal_key, len(self._connections))

    def disconnect(self, ws: WebSocket, principal_key: str) -> None:
        conns = self._connections.get(principal_key)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[principal_key]
        for conversation_id in list(self._subscriptions):
            self.unsubscribe(ws, conversation_id)
        logger.debug("WS disconnected: %s", principal_key)

    def subscribe(self, ws: WebSocket, conversation_id: UUID) -> None:
        self._subscriptions.setdefault(conversation_id, set()).add(ws)

    def unsubscribe(self, ws: WebSocket, conversation_id: UUID) -> None:
        subs = self._subscriptions.get(conversation_id)
        if subs is None:
            return
        subs.discard(ws)
        if not subs:
            del self._subscriptions[conversation_id]

    def subscriber_count(self, conversation_id: UUID) -> int:
        return len(self._subscriptions.get(conversation_id, ()))

    async def broadcast_to_conversation(
        self,
        conversation_id: UUID,
        event_type: str,
        data: dict[str, Any],
    ) -> int:
        """Send one frame to every socket subscribed to the conversation right now."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        sent = 0
        dead: list[WebSocket] = []
        for ws in list(self._subscriptions.get(conversation_id, ())):
            try:
                await ws.send_text(raw)
                sent += 1
            except Exception:
                dead.append(ws)
        for ws in dead:
            self._drop(ws)
        return sent

    async def send_to_principal(
        self,
        principal_key: str,
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        dead: list[WebSocket] = []
        for ws in list(self._connections.get(principal_key, ())):
            try:
                await ws.send_text(raw)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws, principal_key)

    def _drop(self, ws: WebSocket) -> None:
        for key, conns in list(self._connections.items()):
            if ws in conns:
                self.disconnect(ws, key)
                return
        for conversation_id in list(self._subscriptions):
            self.unsubscribe(ws, conversation_id)
