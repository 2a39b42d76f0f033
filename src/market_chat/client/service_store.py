"""MessageStore running the services in-process, one UoW per call."""
from __future__ import annotations

from uuid import UUID

from market_chat.application.dto.principal import Principal
from market_chat.application.ports.clock import Clock
from market_chat.application.uow import UoWFactory
from market_chat.domain.entities.message import Message
from market_chat.infrastructure.db.uow import session_uow
from market_chat.services import message_service


class ServiceMessageStore:
    def __init__(
        self,
        principal: Principal,
        uow_factory: UoWFactory = session_uow,
        clock: Clock | None = None,
    ) -> None:
        self._principal = principal
        self._uow_factory = uow_factory
        self._clock = clock

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        async with self._uow_factory() as uow:
            return await message_service.list_messages(conversation_id, self._principal, uow)

    async def append_message(self, conversation_id: UUID, content: str) -> Message:
        async with self._uow_factory() as uow:
            return await message_service.append_message(
                conversation_id, self._principal, content, uow, self._clock,
            )

    async def mark_read(self, conversation_id: UUID) -> int:
        async with self._uow_factory() as uow:
            return await message_service.mark_read(conversation_id, self._principal, uow)

    async def mark_one_read(self, message_id: UUID) -> bool:
        async with self._uow_factory() as uow:
            return await message_service.mark_one_read(message_id, self._principal, uow)
