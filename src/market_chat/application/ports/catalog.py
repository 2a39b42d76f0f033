"""Read-only lookups owned by the listing and profile services."""
from __future__ import annotations

from typing import Iterable, Protocol
from uuid import UUID

from market_chat.application.dto.conversation import ListingSnippet, ProfileSnippet


class ListingCatalog(Protocol):
    async def get_snippets(self, listing_ids: Iterable[UUID]) -> dict[UUID, ListingSnippet]:
        """Return display data for the listings that exist; unknown ids are omitted."""
        ...


class ProfileDirectory(Protocol):
    async def get_snippets(self, user_ids: Iterable[str]) -> dict[str, ProfileSnippet]: ...
