from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from market_chat.api.deps import UoWFactoryDep, get_verifier
from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import AppError, AuthorizationError, NotFoundError
from market_chat.application.uow import UoWFactory
from market_chat.config import settings
from market_chat.domain.events.message_created import MessageCreated
from market_chat.infrastructure.ws.manager import ConnectionManager
from market_chat.infrastructure.ws.protocol import WsInbound, WsOutbound, error_frame
from market_chat.services import conversation_service, message_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    uow_factory: UoWFactoryDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{pkey}",
    )
    try:
        await _read_loop(websocket, principal, uow_factory)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, pkey)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


def _conversation_id(data: dict[str, Any]) -> UUID | None:
    try:
        return UUID(str(data["conversation_id"]))
    except (KeyError, ValueError):
        return None


async def _read_loop(ws: WebSocket, principal: Principal, uow_factory: UoWFactory) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            await ws.send_text(error_frame("invalid_payload"))
            continue

        if msg.type == "ping":
            await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())
            continue

        conversation_id = _conversation_id(msg.data)
        if conversation_id is None:
            await ws.send_text(error_frame("invalid_data", "conversation_id is required"))
            continue

        if msg.type == "subscribe":
            await _handle_subscribe(ws, principal, conversation_id, uow_factory)

        elif msg.type == "unsubscribe":
            manager.unsubscribe(ws, conversation_id)
            await ws.send_text(
                WsOutbound(
                    type="unsubscribed", data={"conversation_id": str(conversation_id)},
                ).model_dump_json()
            )

        elif msg.type == "message.send":
            await _handle_send(ws, principal, conversation_id, msg.data, uow_factory)

        elif msg.type == "mark_read":
            await _handle_mark_read(principal, conversation_id, uow_factory)

        else:
            await ws.send_text(error_frame("unknown_type", type=msg.type))


async def _handle_subscribe(
    ws: WebSocket,
    principal: Principal,
    conversation_id: UUID,
    uow_factory: UoWFactory,
) -> None:
    try:
        async with uow_factory() as uow:
            await conversation_service.get_conversation(conversation_id, principal, uow)
    except (AuthorizationError, NotFoundError) as exc:
        await ws.send_text(error_frame("forbidden", exc.detail))
        return

    manager.subscribe(ws, conversation_id)
    await ws.send_text(
        WsOutbound(type="subscribed", data={"conversation_id": str(conversation_id)}).model_dump_json()
    )


async def _handle_send(
    ws: WebSocket,
    principal: Principal,
    conversation_id: UUID,
    data: dict[str, Any],
    uow_factory: UoWFactory,
) -> None:
    """Persist and acknowledge. Subscribers hear about it from the outbox fan-out."""
    try:
        async with uow_factory() as uow:
            msg = await message_service.append_message(
                conversation_id, principal, data.get("content"), uow,
            )
    except AppError as exc:
        await ws.send_text(error_frame("send_failed", exc.detail, error=type(exc).__name__))
        return
    except Exception:
        logger.exception("message.send failed in %s", conversation_id)
        await ws.send_text(error_frame("send_failed", "Message not sent"))
        return

    await ws.send_text(
        WsOutbound(type="message.sent", data=MessageCreated(message=msg).to_payload()).model_dump_json()
    )


async def _handle_mark_read(
    principal: Principal,
    conversation_id: UUID,
    uow_factory: UoWFactory,
) -> None:
    try:
        async with uow_factory() as uow:
            await message_service.mark_read(conversation_id, principal, uow)
    except Exception:
        # read receipts are best-effort
        logger.warning("mark_read failed for %s", conversation_id, exc_info=True)
