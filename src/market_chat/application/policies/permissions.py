from __future__ import annotations

from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import AuthorizationError, NotFoundError
from market_chat.domain.entities.conversation import Conversation
from market_chat.domain.value_objects.enums import ParticipantRole


def require_principal(principal: Principal | None) -> Principal:
    if principal is None or not principal.user_id:
        raise AuthorizationError("Authentication required")
    return principal


def assert_conversation_access(
    principal: Principal | None,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not buyer/seller."""
    principal = require_principal(principal)
    if conversation is None:
        raise NotFoundError("Conversation not found")

    if not conversation.is_participant(principal.user_id):
        raise AuthorizationError("Not a participant of this conversation")

    return conversation


def participant_role(principal: Principal, conversation: Conversation) -> ParticipantRole:
    if principal.user_id == conversation.buyer_id:
        return ParticipantRole.BUYER
    return ParticipantRole.SELLER
