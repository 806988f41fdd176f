"""Location search API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from coffee_chronicles.api.dependencies import get_places_service
from coffee_chronicles.models.schemas import CafeInfo, PlaceSearchResponse
from coffee_chronicles.services import PlacesService

router = APIRouter(prefix="/locations")


@router.get("/search", response_model=PlaceSearchResponse)
async def search_places(
    q: str = Query(default="", description="Café name or address"),
    places: PlacesService = Depends(get_places_service),
):
    """Search cafés by free text."""
    return PlaceSearchResponse(results=await places.search(q))


@router.get("/details", response_model=CafeInfo)
async def place_details(
    place_id: str = Query(default="", alias="placeId"),
    places: PlacesService = Depends(get_places_service),
):
    """Full café info for a search result."""
    return await places.details(place_id)


@router.get("/geocode", response_model=CafeInfo)
async def geocode_address(
    address: str = Query(default=""),
    places: PlacesService = Depends(get_places_service),
):
    """Resolve a manually entered address."""
    return await places.geocode(address)
