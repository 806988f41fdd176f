"""Data access layer - repositories."""
from .base import ItemStore
from .coffee_date_repository import CoffeeDateRepository
from .photo_repository import PhotoRepository

__all__ = [
    "ItemStore",
    "CoffeeDateRepository",
    "PhotoRepository",
]
