"""MessageStore speaking to the REST API over httpx."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from market_chat.api.v1.schemas.message import MessageResponse
from market_chat.application.exceptions import (
    AuthorizationError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from market_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/chat"
DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)


def _detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", ""))
    except ValueError:
        return response.text


class HttpMessageStore:
    def __init__(self, client: httpx.AsyncClient, token: str) -> None:
        self._client = client
        self._headers = {"Authorization": f"Bearer {token}"}

    @classmethod
    def connect(cls, base_url: str, token: str) -> HttpMessageStore:
        return cls(httpx.AsyncClient(base_url=base_url, timeout=DEFAULT_TIMEOUT), token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        data = await self._request("GET", f"/conversations/{conversation_id}/messages")
        return [MessageResponse.model_validate(m).to_entity() for m in data]

    async def append_message(self, conversation_id: UUID, content: str) -> Message:
        data = await self._request(
            "POST", f"/conversations/{conversation_id}/messages", json={"content": content},
        )
        return MessageResponse.model_validate(data).to_entity()

    async def mark_read(self, conversation_id: UUID) -> int:
        data = await self._request("POST", f"/conversations/{conversation_id}/read")
        return int(data["updated"])

    async def mark_one_read(self, message_id: UUID) -> bool:
        data = await self._request("POST", f"/messages/{message_id}/read")
        return bool(data["updated"])

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(
                method, f"{API_PREFIX}{path}", headers=self._headers, **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientStoreError(str(exc) or "Network error") from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthorizationError(_detail(response))
        if status == 404:
            raise NotFoundError(_detail(response))
        if status == 422:
            raise ValidationError(_detail(response))
        if status >= 400:
            raise TransientStoreError(_detail(response) or f"HTTP {status}")
        return response.json()
