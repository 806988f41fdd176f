"""Photo Pydantic schemas."""
from dataclasses import dataclass
from typing import List

from pydantic import Field

from .common import CamelModel, Timestamp


@dataclass
class PhotoUpload:
    """Raw uploaded file content as received from the client."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class Photo(CamelModel):
    """Photo domain object with resolved URLs."""

    id: str
    coffee_date_id: str = ""
    s3_key: str
    s3_url: str
    thumbnail_url: str
    filename: str
    content_type: str
    size: int
    uploaded_at: Timestamp


class PhotoListResponse(CamelModel):
    """List of photos."""

    photos: List[Photo] = Field(default_factory=list)


class AddPhotosRequest(CamelModel):
    """Attach already-uploaded photos to a coffee date."""

    photo_ids: List[str] = Field(..., min_length=1, description="Photo IDs to attach")
