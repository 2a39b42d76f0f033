"""Listing/profile lookups against the marketplace's own tables."""
from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.application.dto.conversation import ListingSnippet, ProfileSnippet
from market_chat.config import settings
from market_chat.infrastructure.db.models.catalog import (
    ListingModel,
    ListingPhotoModel,
    ProfileModel,
)


def public_photo_url(storage_path: str) -> str:
    base = settings.STORAGE_PUBLIC_URL.rstrip("/")
    return f"{base}/{settings.LISTING_PHOTOS_BUCKET}/{storage_path.lstrip('/')}"


class SqlListingCatalog:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_snippets(self, listing_ids: Iterable[UUID]) -> dict[UUID, ListingSnippet]:
        ids = list(set(listing_ids))
        if not ids:
            return {}

        listings = (
            await self._session.execute(select(ListingModel).where(ListingModel.id.in_(ids)))
        ).scalars().all()

        # lowest display_order is the representative photo
        photo_stmt = (
            select(ListingPhotoModel.listing_id, ListingPhotoModel.storage_path)
            .where(ListingPhotoModel.listing_id.in_(ids))
            .distinct(ListingPhotoModel.listing_id)
            .order_by(ListingPhotoModel.listing_id, ListingPhotoModel.display_order.asc())
        )
        photos = {lid: path for lid, path in (await self._session.execute(photo_stmt)).all()}

        return {
            lst.id: ListingSnippet(
                id=lst.id,
                title=lst.title,
                price=lst.price,
                photo_url=public_photo_url(photos[lst.id]) if lst.id in photos else None,
            )
            for lst in listings
        }


class SqlProfileDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_snippets(self, user_ids: Iterable[str]) -> dict[str, ProfileSnippet]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = (
            await self._session.execute(select(ProfileModel).where(ProfileModel.id.in_(ids)))
        ).scalars().all()
        return {
            p.id: ProfileSnippet(id=p.id, display_name=p.display_name, avatar_url=p.avatar_url)
            for p in rows
        }
