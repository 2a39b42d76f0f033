from __future__ import annotations

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")

HEADER = "X-Request-ID"
MAX_INBOUND_LENGTH = 64


def _inbound_id(request: Request) -> str | None:
    value = request.headers.get(HEADER, "").strip()
    if not value or len(value) > MAX_INBOUND_LENGTH or not value.isprintable():
        return None
    return value


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (echoed back in X-Request-ID) for log lines."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        rid = _inbound_id(request) or uuid.uuid4().hex
        request.state.request_id = rid
        token = correlation_id_ctx.set(rid)
        try:
            response = await call_next(request)
            response.headers[HEADER] = rid
            return response
        finally:
            correlation_id_ctx.reset(token)
