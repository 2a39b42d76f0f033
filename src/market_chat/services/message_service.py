from __future__ import annotations

import logging
import re
import uuid

from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import NotFoundError, ValidationError
from market_chat.application.policies.permissions import (
    assert_conversation_access,
    require_principal,
)
from market_chat.application.ports.clock import Clock, SystemClock, strictly_after
from market_chat.application.uow import UnitOfWork
from market_chat.domain.entities.message import Message
from market_chat.domain.events.message_created import MessageCreated

logger = logging.getLogger(__name__)


_EDGE_BLANKS = re.compile(r"^[\s\ufeff]+|[\s\ufeff]+$")


def trim(text: str) -> str:
    """Strip surrounding whitespace, byte order marks included."""
    return _EDGE_BLANKS.sub("", text)


def validate_content(content: str | None) -> str:
    """Reject empty or whitespace-only content. Accepted content is stored verbatim."""
    if content is None or not trim(content):
        raise ValidationError("Message cannot be empty")
    return content


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal | None,
    uow: UnitOfWork,
) -> list[Message]:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    return await uow.messages.list_messages(conversation_id)


async def append_message(
    conversation_id: uuid.UUID,
    principal: Principal | None,
    content: str | None,
    uow: UnitOfWork,
    clock: Clock | None = None,
) -> Message:
    """Persist a message and queue its feed notification in the same transaction."""
    content = validate_content(content)
    principal = require_principal(principal)
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)

    # creation times never go backwards within a conversation
    latest = await uow.messages.latest_created_at(conversation_id)
    created_at = strictly_after((clock or SystemClock()).now(), latest)

    msg = await uow.messages_w.append(
        Message(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_id=principal.user_id,
            content=content,
            created_at=created_at,
            is_read=False,
        )
    )
    event = MessageCreated(message=msg)
    await uow.outbox.add(event.event_type, event.to_payload())
    await uow.commit()
    return msg


async def mark_read(
    conversation_id: uuid.UUID,
    principal: Principal | None,
    uow: UnitOfWork,
) -> int:
    """Mark every message the reader did not send as read. Safe to repeat."""
    principal = require_principal(principal)
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)

    updated = await uow.messages_w.mark_read(conversation_id, principal.user_id)
    if updated:
        await uow.commit()
        logger.debug(
            "Marked %d messages read in %s for %s",
            updated, conversation_id, principal.user_id,
        )
    return updated


async def mark_one_read(
    message_id: uuid.UUID,
    principal: Principal | None,
    uow: UnitOfWork,
) -> bool:
    """Mark a single message read. Only the non-sender participant flips the flag."""
    principal = require_principal(principal)
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")

    conversation = await uow.conversations.get_by_id(message.conversation_id)
    assert_conversation_access(principal, conversation)

    if message.sender_id == principal.user_id or message.is_read:
        return False

    updated = await uow.messages_w.mark_one_read(message_id)
    if updated:
        await uow.commit()
    return updated
