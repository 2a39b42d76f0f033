from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.application.dto.conversation import ConversationStats
from market_chat.domain.entities.message import Message
from market_chat.infrastructure.db.mappers import message as mapper
from market_chat.infrastructure.db.models.message import MessageModel


def _unread_for(reader_id: str):
    return (MessageModel.is_read.is_(False)) & (MessageModel.sender_id != reader_id)


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_by_id(self, message_id: UUID) -> Message | None:
        result = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(result) if result else None

    async def latest_created_at(self, conversation_id: UUID) -> datetime | None:
        stmt = select(func.max(MessageModel.created_at)).where(
            MessageModel.conversation_id == conversation_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def stats_for_conversations(
        self,
        conversation_ids: list[UUID],
        reader_id: str,
    ) -> dict[UUID, ConversationStats]:
        if not conversation_ids:
            return {}

        latest_stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id.in_(conversation_ids))
            .distinct(MessageModel.conversation_id)
            .order_by(
                MessageModel.conversation_id,
                MessageModel.created_at.desc(),
                MessageModel.id.desc(),
            )
        )
        latest = {
            m.conversation_id: mapper.model_to_entity(m)
            for m in (await self._session.execute(latest_stmt)).scalars().all()
        }

        unread_stmt = (
            select(MessageModel.conversation_id, func.count())
            .where(
                MessageModel.conversation_id.in_(conversation_ids),
                _unread_for(reader_id),
            )
            .group_by(MessageModel.conversation_id)
        )
        unread = {cid: count for cid, count in (await self._session.execute(unread_stmt)).all()}

        return {
            cid: ConversationStats(
                conversation_id=cid,
                last_message=latest.get(cid),
                unread_count=unread.get(cid, 0),
            )
            for cid in conversation_ids
        }

    async def count_unread(self, conversation_ids: list[UUID], reader_id: str) -> int:
        if not conversation_ids:
            return 0
        stmt = select(func.count()).select_from(MessageModel).where(
            MessageModel.conversation_id.in_(conversation_ids),
            _unread_for(reader_id),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(self, conversation_id: UUID, reader_id: str) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                _unread_for(reader_id),
            )
            .values(is_read=True)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def mark_one_read(self, message_id: UUID) -> bool:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id, MessageModel.is_read.is_(False))
            .values(is_read=True)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)
