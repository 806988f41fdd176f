"""Health check endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.database import get_db
from coffee_chronicles.core.redis import RedisClient, get_redis

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    cache: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
):
    """
    Health check endpoint.

    The API is healthy when the record store answers; the session cache
    is reported separately.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unhealthy"

    cache_status = "healthy" if await redis.ping() else "unavailable"

    status = "healthy" if db_status == "healthy" else "unhealthy"

    return HealthResponse(
        status=status,
        database=db_status,
        cache=cache_status
    )
