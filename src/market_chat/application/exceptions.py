from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class AuthorizationError(AppError):
    """Caller is unauthenticated or not a participant of the conversation."""


class ValidationError(AppError):
    """Rejected before any store call (empty content, self-conversation)."""


class ConflictError(AppError):
    """Uniqueness race on (listing, buyer); resolved inside the directory."""


class ConversationCreateError(AppError):
    def __init__(self, detail: str = "Could not start conversation") -> None:
        super().__init__(detail)


class TransientStoreError(AppError):
    """Network or store failure on list/append/mark-read."""


class ChannelError(AppError):
    """Live feed connection dropped or could not (re)subscribe."""
