from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.application.exceptions import ConflictError
from market_chat.domain.entities.conversation import Conversation
from market_chat.infrastructure.db.mappers import conversation as mapper
from market_chat.infrastructure.db.models.conversation import ConversationModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def get_by_listing_and_buyer(
        self,
        listing_id: UUID,
        buyer_id: str,
    ) -> Conversation | None:
        stmt = select(ConversationModel).where(
            ConversationModel.listing_id == listing_id,
            ConversationModel.buyer_id == buyer_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    ConversationModel.buyer_id == user_id,
                    ConversationModel.seller_id == user_id,
                )
            )
            .order_by(ConversationModel.created_at.desc(), ConversationModel.id)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, conversation: Conversation) -> Conversation:
        """Insert unless (listing_id, buyer_id) is taken; the loser gets ConflictError."""
        stmt = (
            pg_insert(ConversationModel)
            .values(**mapper.entity_to_values(conversation))
            .on_conflict_do_nothing(constraint="uq_conversation_listing_buyer")
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise ConflictError("Conversation already exists for this listing and buyer")
        return mapper.model_to_entity(row)
