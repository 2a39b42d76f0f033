"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from market_chat.application.dto.principal import Principal
from market_chat.application.ports.auth import TokenVerifier
from market_chat.application.ports.catalog import ListingCatalog, ProfileDirectory
from market_chat.application.uow import UoWFactory
from market_chat.config import settings
from market_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from market_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from market_chat.infrastructure.catalog.sql_catalog import (
    SqlListingCatalog,
    SqlProfileDirectory,
)
from market_chat.infrastructure.db.session import AsyncSessionLocal
from market_chat.infrastructure.db.uow import SqlAlchemyUoW, session_uow

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_uow(session: SessionDep) -> SqlAlchemyUoW:
    return SqlAlchemyUoW(session)


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def get_listing_catalog(session: SessionDep) -> ListingCatalog:
    return SqlListingCatalog(session)


def get_profile_directory(session: SessionDep) -> ProfileDirectory:
    return SqlProfileDirectory(session)


CatalogDep = Annotated[ListingCatalog, Depends(get_listing_catalog)]
ProfilesDep = Annotated[ProfileDirectory, Depends(get_profile_directory)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, settings.JWT_AUDIENCE)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM, settings.JWT_AUDIENCE)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_uow_factory() -> UoWFactory:
    """Short-lived UoWs for long-running connections (one per WS command)."""
    return session_uow


UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]
