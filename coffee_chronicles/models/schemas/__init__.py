"""Pydantic schemas for the API and the domain layer."""
from .common import CamelModel, SuccessResponse
from .photo import Photo, PhotoUpload, PhotoListResponse, AddPhotosRequest
from .coffee_date import (
    Coordinates,
    CafeInfo,
    Ratings,
    CoffeeDate,
    CoffeeDateCreate,
    CoffeeDateUpdate,
)
from .location import PlaceSearchResult, PlaceSearchResponse
from .auth import LoginRequest, LoginResponse, AuthResult, VerifyResponse

__all__ = [
    "CamelModel",
    "SuccessResponse",
    "Photo",
    "PhotoUpload",
    "PhotoListResponse",
    "AddPhotosRequest",
    "Coordinates",
    "CafeInfo",
    "Ratings",
    "CoffeeDate",
    "CoffeeDateCreate",
    "CoffeeDateUpdate",
    "PlaceSearchResult",
    "PlaceSearchResponse",
    "LoginRequest",
    "LoginResponse",
    "AuthResult",
    "VerifyResponse",
]
