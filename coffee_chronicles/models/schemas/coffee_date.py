"""Coffee date Pydantic schemas."""
from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import Field

from .common import CamelModel, Timestamp
from .photo import Photo


class Coordinates(CamelModel):
    """Geographic coordinate pair."""

    lat: float
    lng: float


class CafeInfo(CamelModel):
    """Café details as resolved by the places provider."""

    place_id: str = ""
    name: str = ""
    formatted_address: str = ""
    coordinates: Coordinates = Field(default_factory=lambda: Coordinates(lat=0.0, lng=0.0))
    types: List[str] = Field(default_factory=list)


class Ratings(CamelModel):
    """Star ratings. Range checks happen in the service layer."""

    coffee: int
    dessert: Optional[int] = None


DateInput = Union[datetime, date, str]


class CoffeeDateCreate(CamelModel):
    """Schema for creating a coffee date. Photos are attached afterwards."""

    cafe_info: Optional[CafeInfo] = None
    ratings: Optional[Ratings] = None
    visit_date: Optional[DateInput] = None


class CoffeeDateUpdate(CamelModel):
    """Schema for updating a coffee date. Only supplied fields are written."""

    cafe_info: Optional[CafeInfo] = None
    ratings: Optional[Ratings] = None
    visit_date: Optional[DateInput] = None
    primary_photo_id: Optional[str] = None


class CoffeeDate(CamelModel):
    """Coffee date aggregate composed with its photos."""

    id: str
    cafe_info: CafeInfo
    photo_ids: List[str] = Field(default_factory=list)
    photos: List[Photo] = Field(default_factory=list)
    primary_photo_id: str = ""
    ratings: Ratings
    visit_date: Timestamp
    created_at: Timestamp
    updated_at: Timestamp
