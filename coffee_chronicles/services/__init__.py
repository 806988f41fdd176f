"""Business logic services."""
from .storage_service import BlobStore, FileSystemBlobStore, S3BlobStore, create_blob_store
from .thumbnail_service import ThumbnailService
from .photo_service import PhotoService
from .coffee_date_service import CoffeeDateService
from .session_service import SessionService
from .places_service import PlacesService

__all__ = [
    "BlobStore",
    "FileSystemBlobStore",
    "S3BlobStore",
    "create_blob_store",
    "ThumbnailService",
    "PhotoService",
    "CoffeeDateService",
    "SessionService",
    "PlacesService",
]
