from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from market_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from market_chat.api.middleware.metrics import RequestTimingMiddleware
from market_chat.api.v1.routers import conversations, health, messages, ws
from market_chat.application.exceptions import (
    AuthorizationError,
    ConflictError,
    ConversationCreateError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from market_chat.config import settings
from market_chat.domain.value_objects.enums import FeedEventType
from market_chat.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber

logger = logging.getLogger(__name__)


async def _on_feed_event(event_type: str, data: dict[str, Any]) -> None:
    """Forward a per-conversation feed event to local WS subscribers."""
    if event_type != FeedEventType.MESSAGE_CREATED:
        return
    try:
        conversation_id = UUID(str(data.get("conversation_id")))
    except ValueError:
        return
    await ws.get_manager().broadcast_to_conversation(conversation_id, event_type, data)


async def _on_fanout_event(event_type: str, data: dict[str, Any]) -> None:
    """Tell both participants' open sockets that a new conversation exists."""
    if event_type != FeedEventType.CONVERSATION_CREATED:
        return
    manager = ws.get_manager()
    for key in ("buyer_id", "seller_id"):
        user_id = data.get(key)
        if user_id:
            await manager.send_to_principal(f"user:{user_id}", event_type, data)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    subscribers = [
        RedisPubSubSubscriber(
            app.state.redis,
            f"{settings.REDIS_FEED_CHANNEL_PREFIX}*",
            _on_feed_event,
            pattern=True,
        ),
        RedisPubSubSubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            _on_fanout_event,
        ),
    ]
    for subscriber in subscribers:
        await subscriber.start()
    app.state.pubsub_subscribers = subscribers

    yield

    for subscriber in subscribers:
        await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(AuthorizationError)
    async def _forbidden(_req: Request, exc: AuthorizationError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(ConversationCreateError)
    async def _create_failed(_req: Request, exc: ConversationCreateError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})

    @app.exception_handler(TransientStoreError)
    async def _unavailable(_req: Request, exc: TransientStoreError) -> JSONResponse:
        logger.warning("Store unavailable: %s", exc.detail)
        return JSONResponse(status_code=503, content={"detail": exc.detail})
