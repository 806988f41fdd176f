"""Dependency injection for FastAPI routes."""
from __future__ import annotations

from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.database import get_db
from coffee_chronicles.core.exceptions import AuthenticationException
from coffee_chronicles.core.redis import RedisClient, get_redis
from coffee_chronicles.services import (
    BlobStore,
    CoffeeDateService,
    PhotoService,
    PlacesService,
    SessionService,
    ThumbnailService,
    create_blob_store,
)


# Singleton service instances
_blob_store: BlobStore | None = None
_thumbnail_service: ThumbnailService | None = None
_http_client: httpx.AsyncClient | None = None


def get_blob_store() -> BlobStore:
    """Get blob store (singleton)."""
    global _blob_store
    if _blob_store is None:
        _blob_store = create_blob_store()
    return _blob_store


def get_thumbnail_service() -> ThumbnailService:
    """Get thumbnail service (singleton)."""
    global _thumbnail_service
    if _thumbnail_service is None:
        _thumbnail_service = ThumbnailService()
    return _thumbnail_service


def get_http_client() -> httpx.AsyncClient:
    """Get shared HTTP client for the places provider (singleton)."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.places_timeout_seconds)
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


# Request-scoped services (get fresh instances with DB session)


async def get_photo_service(
    db: AsyncSession = Depends(get_db),
    storage: BlobStore = Depends(get_blob_store),
    thumbnails: ThumbnailService = Depends(get_thumbnail_service),
) -> PhotoService:
    """Get photo service."""
    return PhotoService(db, storage, thumbnails)


async def get_coffee_date_service(
    db: AsyncSession = Depends(get_db),
    photo_service: PhotoService = Depends(get_photo_service),
) -> CoffeeDateService:
    """Get coffee date service."""
    return CoffeeDateService(db, photo_service)


async def get_session_service(
    redis: RedisClient = Depends(get_redis),
) -> SessionService:
    """Get session service."""
    return SessionService(redis)


async def get_places_service(
    client: httpx.AsyncClient = Depends(get_http_client),
) -> PlacesService:
    """Get places service."""
    return PlacesService(client)


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.auth_cookie_name)


async def require_auth(
    token: Optional[str] = Depends(get_session_token),
    sessions: SessionService = Depends(get_session_service),
) -> str:
    """Reject the request unless it carries a live session cookie."""
    if not await sessions.verify(token):
        raise AuthenticationException()
    return token
