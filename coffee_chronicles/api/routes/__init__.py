"""API routes."""
from fastapi import APIRouter

from . import auth, coffee_dates, health, locations, photos

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(coffee_dates.router, tags=["coffee-dates"])
api_router.include_router(photos.router, tags=["photos"])
api_router.include_router(locations.router, tags=["locations"])

__all__ = ["api_router"]
