"""Café search and geocoding through the Google Maps web APIs."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.exceptions import (
    ExternalServiceException,
    NotFoundException,
    ValidationException,
)
from coffee_chronicles.models.schemas import CafeInfo, Coordinates, PlaceSearchResult
from coffee_chronicles.services.validation import sanitize_string

logger = logging.getLogger(__name__)

SERVICE_NAME = "google_maps"
MIN_QUERY_LENGTH = 2
NO_RESULT_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class PlacesService:
    """Client for place text search, place details and geocoding."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        """
        Initialize places service.

        Args:
            client: Shared HTTP client
            api_key: Google Maps API key
            base_url: API base URL
        """
        self.client = client
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")

    async def _request(self, path: str, params: Dict[str, Any], operation: str) -> Dict[str, Any]:
        if not self.api_key:
            raise ExternalServiceException(SERVICE_NAME, "Google Maps API key is not configured")

        try:
            response = await self.client.get(
                f"{self.base_url}/{path}",
                params={**params, "key": self.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"{operation} request failed: {e}")
            raise ExternalServiceException(SERVICE_NAME, f"{operation} request failed: {e}")

        status = data.get("status")
        if status == "OK":
            return data
        if status in NO_RESULT_STATUSES:
            data.setdefault("results", [])
            return data

        logger.error(f"{operation} failed: {status} {data.get('error_message', '')}")
        raise ExternalServiceException(
            SERVICE_NAME,
            f"{operation} failed with status: {status}",
            status=status,
        )

    async def search(self, query: str) -> List[PlaceSearchResult]:
        """
        Text search biased to cafés, de-duplicated by place ID.

        Raises:
            ValidationException: If the query is shorter than two characters
        """
        query = sanitize_string(query or "")
        if len(query) < MIN_QUERY_LENGTH:
            raise ValidationException(
                f"Query must be at least {MIN_QUERY_LENGTH} characters long", "q"
            )

        lowered = query.lower()
        search_query = query if "cafe" in lowered or "coffee" in lowered else f"{query} cafe"
        data = await self._request(
            "place/textsearch/json",
            {"query": search_query, "type": "cafe"},
            "Places search",
        )

        results: List[PlaceSearchResult] = []
        seen = set()
        for place in data.get("results", []):
            place_id = place.get("place_id")
            if not place_id or not place.get("name") or not place.get("formatted_address"):
                continue
            if place_id in seen:
                continue
            seen.add(place_id)
            results.append(
                PlaceSearchResult(
                    place_id=place_id,
                    name=place["name"],
                    formatted_address=place["formatted_address"],
                    types=place.get("types") or [],
                )
            )
        return results

    async def details(self, place_id: str) -> CafeInfo:
        """
        Full café info for a place ID.

        Raises:
            NotFoundException: If the provider knows no such place
        """
        if not place_id or not place_id.strip():
            raise ValidationException("Place ID is required", "placeId")

        data = await self._request(
            "place/details/json",
            {"place_id": place_id, "fields": "place_id,name,formatted_address,geometry,types"},
            "Place details",
        )
        place = data.get("result")
        if not place:
            raise NotFoundException("Place", place_id)

        location = (place.get("geometry") or {}).get("location")
        if not place.get("place_id") or not place.get("name") or not place.get("formatted_address") or not location:
            raise ExternalServiceException(SERVICE_NAME, "Incomplete place details received")

        return CafeInfo(
            place_id=place["place_id"],
            name=place["name"],
            formatted_address=place["formatted_address"],
            coordinates=Coordinates(lat=location["lat"], lng=location["lng"]),
            types=place.get("types") or [],
        )

    async def geocode(self, address: str) -> CafeInfo:
        """
        Resolve a free-form address. The address itself becomes the café name.

        Raises:
            NotFoundException: If the address cannot be located
        """
        if not address or not address.strip():
            raise ValidationException("Address is required", "address")

        data = await self._request("geocode/json", {"address": address}, "Geocoding")
        results = data.get("results") or []
        location = (results[0].get("geometry") or {}).get("location") if results else None
        if not location:
            raise NotFoundException("Location", address)

        result = results[0]
        return CafeInfo(
            place_id=result.get("place_id") or "",
            name=address,
            formatted_address=result.get("formatted_address") or address,
            coordinates=Coordinates(lat=location["lat"], lng=location["lng"]),
            types=result.get("types") or [],
        )
