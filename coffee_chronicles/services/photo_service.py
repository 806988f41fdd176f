"""Photo service: uploads, thumbnails and photo metadata."""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.exceptions import (
    ChroniclesException,
    NotFoundException,
    ValidationException,
)
from coffee_chronicles.models.schemas import Photo, PhotoUpload
from coffee_chronicles.repositories import CoffeeDateRepository, PhotoRepository
from coffee_chronicles.repositories.photo_repository import owner_index_pk
from coffee_chronicles.services.storage_service import BlobStore
from coffee_chronicles.services.thumbnail_service import ThumbnailService
from coffee_chronicles.services.validation import (
    check_upload,
    format_timestamp,
    parse_date,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass
class _StoredBlobs:
    """Blobs written for one upload, before its metadata row exists."""

    photo_id: str
    upload: PhotoUpload
    original_key: str
    thumbnail_key: str


def _date_folder(moment: datetime) -> str:
    return moment.strftime("%Y/%m/%d")


def _safe_filename(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).name or "upload"


class PhotoService:
    """Service for photo operations."""

    def __init__(
        self,
        db: AsyncSession,
        storage: BlobStore,
        thumbnails: ThumbnailService,
    ):
        """
        Initialize photo service.

        Args:
            db: Database session
            storage: Blob store for originals and thumbnails
            thumbnails: Thumbnail generator
        """
        self.db = db
        self.storage = storage
        self.thumbnails = thumbnails
        self.repo = PhotoRepository(db)
        self.coffee_date_repo = CoffeeDateRepository(db)
        self.max_file_size = settings.max_upload_bytes
        self.allowed_types = list(settings.allowed_content_types)

    def to_photo(self, record: Dict[str, Any]) -> Photo:
        """Convert a stored photo row into the Photo domain object."""
        original_key = record["s3Key"]
        thumbnail_key = record.get("thumbnailS3Key") or original_key
        return Photo(
            id=record["id"],
            coffee_date_id=record.get("coffeeDateId") or "",
            s3_key=original_key,
            s3_url=self.storage.public_url(original_key),
            thumbnail_url=self.storage.public_url(thumbnail_key),
            filename=record["filename"],
            content_type=record["contentType"],
            size=record["size"],
            uploaded_at=parse_date(record["uploadedAt"], "uploadedAt"),
        )

    # Uploads

    def validate_files(self, files: Sequence[Optional[PhotoUpload]]) -> None:
        """
        Validate a whole batch before anything is stored.

        Raises:
            ValidationException: Tagged ``files`` or ``files[i].size|type``
        """
        if not files:
            raise ValidationException("At least one file is required", "files")

        for index, upload in enumerate(files):
            field = f"files[{index}]"
            if upload is None:
                raise ValidationException(f"File {index + 1} is required", field)
            check_upload(
                upload.size,
                upload.content_type,
                field,
                self.max_file_size,
                self.allowed_types,
            )

    async def upload_many(
        self,
        files: Sequence[PhotoUpload],
        coffee_date_id: Optional[str] = None,
    ) -> List[Photo]:
        """
        Upload a batch of photos, optionally owned by a coffee date.

        Every file is validated before any blob is written. Thumbnails and
        blobs for all files are then produced concurrently, after which one
        metadata row per file is persisted. If any file fails, blobs and rows
        already written for its siblings are removed before the error
        propagates.

        Args:
            files: Uploaded files
            coffee_date_id: Owning coffee date, or None for unassigned

        Returns:
            Uploaded photos in input order
        """
        self.validate_files(files)
        uploaded_at = utc_now()

        results = await asyncio.gather(
            *(self._store_blobs(upload, uploaded_at) for upload in files),
            return_exceptions=True,
        )
        stored = [r for r in results if isinstance(r, _StoredBlobs)]
        failures = [r for r in results if not isinstance(r, _StoredBlobs)]

        if failures:
            logger.error(
                f"Photo batch upload failed for {len(failures)} of {len(files)} files: {failures[0]}"
            )
            await self._discard([key for s in stored for key in (s.original_key, s.thumbnail_key)])
            raise failures[0]

        records = [self._build_record(s, coffee_date_id, uploaded_at) for s in stored]
        written: List[str] = []
        try:
            for record in records:
                await self.repo.put(record)
                written.append(record["id"])
        except ChroniclesException as e:
            logger.error(f"Photo batch upload failed writing metadata: {e}")
            await self._discard_rows(written)
            await self._discard([key for s in stored for key in (s.original_key, s.thumbnail_key)])
            raise

        logger.info(f"Uploaded {len(records)} photos (coffee date: {coffee_date_id or 'unassigned'})")
        return [self.to_photo(record) for record in records]

    async def _store_blobs(self, upload: PhotoUpload, uploaded_at: datetime) -> _StoredBlobs:
        photo_id = str(uuid.uuid4())
        folder = _date_folder(uploaded_at)
        original_key = f"originals/{folder}/{photo_id}-{_safe_filename(upload.filename)}"
        thumbnail_key = f"thumbnails/{folder}/{photo_id}-thumb.jpg"

        thumbnail = await self.thumbnails.resize(upload.data)

        written: List[str] = []
        try:
            await self.storage.put(original_key, upload.data, upload.content_type)
            written.append(original_key)
            await self.storage.put(thumbnail_key, thumbnail, self.thumbnails.content_type)
            written.append(thumbnail_key)
        except ChroniclesException:
            await self._discard(written)
            raise

        return _StoredBlobs(photo_id, upload, original_key, thumbnail_key)

    def _build_record(
        self,
        stored: _StoredBlobs,
        coffee_date_id: Optional[str],
        uploaded_at: datetime,
    ) -> Dict[str, Any]:
        return {
            **self.repo.keys_for(stored.photo_id, coffee_date_id),
            "id": stored.photo_id,
            "coffeeDateId": coffee_date_id or "",
            "s3Key": stored.original_key,
            "s3Bucket": self.storage.bucket,
            "filename": stored.upload.filename,
            "contentType": stored.upload.content_type,
            "size": stored.upload.size,
            "thumbnailS3Key": stored.thumbnail_key,
            "uploadedAt": format_timestamp(uploaded_at),
        }

    async def _discard(self, keys: List[str]) -> None:
        """Best-effort removal of blobs written by a failed upload."""
        for key in keys:
            try:
                await self.storage.delete(key)
            except ChroniclesException as e:
                logger.warning(f"Could not remove orphaned blob {key}: {e}")

    async def _discard_rows(self, photo_ids: List[str]) -> None:
        """Best-effort removal of metadata rows written by a failed upload."""
        for photo_id in photo_ids:
            try:
                await self.repo.remove(photo_id)
            except ChroniclesException as e:
                logger.warning(f"Could not remove orphaned photo row {photo_id}: {e}")

    # Reads

    @staticmethod
    def _require_id(value: str, field: str, label: str) -> None:
        if not value or not str(value).strip():
            raise ValidationException(f"{label} is required", field)

    async def get(self, photo_id: str) -> Optional[Photo]:
        """Get a photo by ID, or None if it does not exist."""
        self._require_id(photo_id, "photoId", "Photo ID")
        record = await self.repo.get(photo_id)
        return self.to_photo(record) if record else None

    async def list_by_coffee_date(self, coffee_date_id: str) -> List[Photo]:
        """Photos owned by a coffee date (empty list if none)."""
        self._require_id(coffee_date_id, "coffeeDateId", "Coffee date ID")
        records = await self.repo.list_by_coffee_date(coffee_date_id)
        return [self.to_photo(r) for r in records]

    async def list_unassigned(self) -> List[Photo]:
        records = await self.repo.list_unassigned()
        return [self.to_photo(r) for r in records]

    # Writes

    async def associate(self, photo_ids: Sequence[str], coffee_date_id: str) -> None:
        """
        Move photos under a coffee date.

        Each photo is updated on its own; a failure part-way leaves the
        earlier photos re-assigned.

        Raises:
            NotFoundException: If a photo does not exist
        """
        self._require_id(coffee_date_id, "coffeeDateId", "Coffee date ID")
        for photo_id in photo_ids:
            if await self.repo.get(photo_id) is None:
                raise NotFoundException("Photo", photo_id)
            await self.repo.update_fields(
                photo_id,
                {
                    "coffeeDateId": coffee_date_id,
                    "GSI1PK": owner_index_pk(coffee_date_id),
                },
            )
        logger.info(f"Associated {len(photo_ids)} photos with coffee date {coffee_date_id}")

    async def delete(self, photo_id: str, detach: bool = True) -> None:
        """
        Delete a photo's blobs and then its metadata row.

        If a blob delete fails the row is kept, so the photo can be deleted
        again later. With ``detach`` the photo is first dropped from its
        coffee date's photo list and primary photo; that write is
        conditional, so a conflict leaves the photo and its blobs intact.

        Raises:
            NotFoundException: If the photo does not exist
            StorageException: If a blob cannot be deleted
            ConflictException: If the coffee date changed during the detach
        """
        self._require_id(photo_id, "photoId", "Photo ID")
        record = await self.repo.get(photo_id)
        if not record:
            raise NotFoundException("Photo", photo_id)

        # a conflicting detach must fail before any blob is gone
        coffee_date_id = record.get("coffeeDateId")
        if detach and coffee_date_id:
            await self._detach(coffee_date_id, photo_id)

        keys = [record["s3Key"]]
        if record.get("thumbnailS3Key"):
            keys.append(record["thumbnailS3Key"])

        try:
            await asyncio.gather(*(self.storage.delete(key) for key in keys))
        except ChroniclesException as e:
            logger.error(f"Failed to delete blobs of photo {photo_id}: {e}")
            raise

        await self.repo.remove(photo_id)

    async def _detach(self, coffee_date_id: str, photo_id: str) -> None:
        parent = await self.coffee_date_repo.get(coffee_date_id)
        if not parent:
            return

        remaining = [p for p in parent.get("photoIds", []) if p != photo_id]
        primary = parent.get("primaryPhotoId") or ""
        if primary == photo_id:
            primary = remaining[0] if remaining else ""

        await self.coffee_date_repo.update_fields(
            coffee_date_id,
            {
                "photoIds": remaining,
                "primaryPhotoId": primary,
                "updatedAt": format_timestamp(utc_now()),
            },
            expected_version=parent["version"],
        )

    # Thumbnails

    async def thumbnail_for(self, original_key: str) -> str:
        """
        Regenerate a thumbnail from an already stored original.

        Returns:
            Key of the stored thumbnail
        """
        self._require_id(original_key, "s3Key", "S3 key")

        data = await self.storage.get(original_key)
        thumbnail = await self.thumbnails.resize(data)

        parts = original_key.split("/")
        filename = PurePosixPath(parts[-1]).stem
        # originals/YYYY/MM/DD/<file> keeps its date folder
        folder = "/".join(parts[1:-1]) if len(parts) > 2 else _date_folder(utc_now())
        thumbnail_key = f"thumbnails/{folder}/thumb-{filename}.jpg"

        await self.storage.put(thumbnail_key, thumbnail, self.thumbnails.content_type)
        return thumbnail_key

    async def backfill_thumbnails(self) -> int:
        """Generate thumbnails for every photo row that lacks one."""
        updated = 0
        for record in await self.repo.list_all():
            if record.get("thumbnailS3Key"):
                continue
            try:
                thumbnail_key = await self.thumbnail_for(record["s3Key"])
            except ChroniclesException as e:
                logger.error(f"Thumbnail backfill failed for photo {record['id']}: {e}")
                continue
            await self.repo.update_fields(record["id"], {"thumbnailS3Key": thumbnail_key})
            updated += 1
        return updated

    async def signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Time-limited URL for a stored blob."""
        self._require_id(key, "s3Key", "S3 key")
        return await self.storage.signed_url(key, expires_in=expires_in)
