"""Coffee date API routes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from coffee_chronicles.api.dependencies import (
    get_coffee_date_service,
    get_photo_service,
    require_auth,
)
from coffee_chronicles.core.exceptions import NotFoundException
from coffee_chronicles.models.schemas import (
    AddPhotosRequest,
    CoffeeDate,
    CoffeeDateCreate,
    CoffeeDateUpdate,
    SuccessResponse,
)
from coffee_chronicles.services import CoffeeDateService, PhotoService
from coffee_chronicles.services.coffee_date_service import DEFAULT_SORT

router = APIRouter(prefix="/coffee-dates")


@router.get("", response_model=List[CoffeeDate])
async def list_coffee_dates(
    sort: str = Query(default=DEFAULT_SORT, description="Sort option, e.g. visitDate-desc"),
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
):
    """
    List all coffee dates with their photos.

    **Parameters:**
    - **sort**: visitDate, createdAt, coffee-rating, dessert-rating or
      cafe-name, suffixed with -asc or -desc
    """
    return await coffee_dates.list_all(sort)


@router.post(
    "",
    response_model=CoffeeDate,
    status_code=201,
    dependencies=[Depends(require_auth)],
)
async def create_coffee_date(
    data: CoffeeDateCreate,
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
):
    """Create a coffee date. Photos are attached afterwards."""
    return await coffee_dates.create(data)


@router.get("/{coffee_date_id}", response_model=CoffeeDate)
async def get_coffee_date(
    coffee_date_id: str,
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
):
    """Get coffee date by ID."""
    coffee_date = await coffee_dates.get_by_id(coffee_date_id)
    if coffee_date is None:
        raise NotFoundException("Coffee date", coffee_date_id)
    return coffee_date


@router.put(
    "/{coffee_date_id}",
    response_model=CoffeeDate,
    dependencies=[Depends(require_auth)],
)
async def update_coffee_date(
    coffee_date_id: str,
    data: CoffeeDateUpdate,
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
):
    """Update the supplied fields of a coffee date."""
    return await coffee_dates.update(coffee_date_id, data)


@router.delete(
    "/{coffee_date_id}",
    response_model=SuccessResponse,
    dependencies=[Depends(require_auth)],
)
async def delete_coffee_date(
    coffee_date_id: str,
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
):
    """Delete a coffee date together with all of its photos."""
    await coffee_dates.delete(coffee_date_id)
    return SuccessResponse()


@router.post(
    "/{coffee_date_id}/photos",
    response_model=CoffeeDate,
    dependencies=[Depends(require_auth)],
)
async def add_photos(
    coffee_date_id: str,
    data: AddPhotosRequest,
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
    photos: PhotoService = Depends(get_photo_service),
):
    """Move already uploaded photos under a coffee date."""
    if await coffee_dates.get_by_id(coffee_date_id) is None:
        raise NotFoundException("Coffee date", coffee_date_id)

    await photos.associate(data.photo_ids, coffee_date_id)
    return await coffee_dates.add_photos(coffee_date_id, data.photo_ids)
