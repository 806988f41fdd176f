"""Location search Pydantic schemas."""
from typing import List

from pydantic import Field

from .common import CamelModel


class PlaceSearchResult(CamelModel):
    """One candidate café returned by a text search."""

    place_id: str
    name: str
    formatted_address: str
    types: List[str] = Field(default_factory=list)


class PlaceSearchResponse(CamelModel):
    """Search results wrapper."""

    results: List[PlaceSearchResult] = Field(default_factory=list)
