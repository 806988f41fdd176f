"""Unit tests for PhotoService."""
from __future__ import annotations

import io

import pytest
from PIL import Image

from coffee_chronicles.core.exceptions import (
    ConflictException,
    DataAccessException,
    ImageProcessingException,
    NotFoundException,
    StorageException,
    ValidationException,
)
from coffee_chronicles.services import PhotoService
from tests.conftest import InMemoryBlobStore
from tests.factories import (
    CoffeeDatePayloadFactory,
    PhotoUploadFactory,
    make_image_bytes,
    pad_to,
)

MB = 1024 * 1024


@pytest.mark.asyncio
class TestUpload:
    """Test PhotoService.upload_many."""

    async def test_upload_five_megabyte_jpeg(self, photo_service, blob_store):
        """Test a 5 MB JPEG is stored with a 400x400 JPEG thumbnail."""
        upload = PhotoUploadFactory.create(
            filename="espresso.jpg",
            data=pad_to(make_image_bytes((1600, 1200)), 5 * MB),
        )

        [photo] = await photo_service.upload_many([upload])

        assert photo.size == 5 * MB
        assert photo.filename == "espresso.jpg"
        assert photo.content_type == "image/jpeg"
        assert photo.coffee_date_id == ""
        assert photo.s3_key.startswith("originals/")
        assert photo.s3_key.endswith(f"{photo.id}-espresso.jpg")
        assert photo.s3_url == blob_store.public_url(photo.s3_key)
        assert blob_store.objects[photo.s3_key] == upload.data

        record = await photo_service.repo.get(photo.id)
        thumbnail_key = record["thumbnailS3Key"]
        assert thumbnail_key.startswith("thumbnails/")
        assert photo.thumbnail_url == blob_store.public_url(thumbnail_key)
        assert record["s3Bucket"] == "test-bucket"
        assert record["uploadedAt"].endswith("Z")

        with Image.open(io.BytesIO(blob_store.objects[thumbnail_key])) as thumb:
            assert thumb.format == "JPEG"
            assert thumb.size == (400, 400)

    async def test_upload_multiple_keeps_input_order(self, photo_service):
        uploads = [
            PhotoUploadFactory.create(filename="one.jpg"),
            PhotoUploadFactory.create(filename="two.png", content_type="image/png", data=make_image_bytes(fmt="PNG")),
            PhotoUploadFactory.create(filename="three.jpg"),
        ]

        photos = await photo_service.upload_many(uploads)

        assert [p.filename for p in photos] == ["one.jpg", "two.png", "three.jpg"]
        assert len({p.id for p in photos}) == 3
        assert len(await photo_service.list_unassigned()) == 3

    async def test_upload_for_coffee_date(self, photo_service):
        photos = await photo_service.upload_many([PhotoUploadFactory.create()], coffee_date_id="cd-1")

        listed = await photo_service.list_by_coffee_date("cd-1")

        assert [p.id for p in listed] == [photos[0].id]
        assert listed[0].coffee_date_id == "cd-1"
        assert await photo_service.list_unassigned() == []

    async def test_oversize_file_stores_nothing(self, photo_service, blob_store):
        """Test an 11 MB file fails validation before any blob is written."""
        upload = PhotoUploadFactory.create(data=pad_to(make_image_bytes(), 11 * MB))

        with pytest.raises(ValidationException) as exc:
            await photo_service.upload_many([upload])

        assert exc.value.field == "files[0].size"
        assert blob_store.objects == {}
        assert await photo_service.list_unassigned() == []

    async def test_invalid_file_anywhere_in_batch_fails_whole_batch(self, photo_service, blob_store):
        uploads = [
            PhotoUploadFactory.create(),
            PhotoUploadFactory.create(filename="anim.gif", content_type="image/gif"),
        ]

        with pytest.raises(ValidationException) as exc:
            await photo_service.upload_many(uploads)

        assert exc.value.field == "files[1].type"
        assert blob_store.objects == {}

    async def test_empty_batch(self, photo_service):
        with pytest.raises(ValidationException) as exc:
            await photo_service.upload_many([])
        assert exc.value.field == "files"

    async def test_storage_failure_removes_sibling_blobs(self, db_session, thumbnail_service):
        """Test blobs of successful siblings are removed when one file fails."""
        blob_store = InMemoryBlobStore(fail_on=["broken.jpg"])
        service = PhotoService(db_session, blob_store, thumbnail_service)
        uploads = [
            PhotoUploadFactory.create(filename="fine.jpg"),
            PhotoUploadFactory.create(filename="broken.jpg"),
        ]

        with pytest.raises(StorageException):
            await service.upload_many(uploads)

        assert blob_store.objects == {}
        assert await service.list_unassigned() == []

    async def test_metadata_failure_removes_sibling_rows_and_blobs(
        self, photo_service, blob_store, monkeypatch
    ):
        """Test rows already written are removed when a later row fails."""
        put = photo_service.repo.put
        calls = []

        async def failing_second_put(record):
            calls.append(record["id"])
            if len(calls) == 2:
                raise DataAccessException("simulated write failure")
            await put(record)

        monkeypatch.setattr(photo_service.repo, "put", failing_second_put)

        with pytest.raises(DataAccessException):
            await photo_service.upload_many(
                [PhotoUploadFactory.create(), PhotoUploadFactory.create(), PhotoUploadFactory.create()]
            )

        assert len(calls) == 2
        assert await photo_service.repo.list_all() == []
        assert blob_store.objects == {}

    async def test_undecodable_image(self, photo_service, blob_store):
        upload = PhotoUploadFactory.create(data=b"definitely not a jpeg")

        with pytest.raises(ImageProcessingException):
            await photo_service.upload_many([upload])

        assert blob_store.objects == {}


@pytest.mark.asyncio
class TestReadsAndAssociation:
    """Test reads and associate."""

    async def test_get_missing_photo(self, photo_service):
        assert await photo_service.get("missing") is None

    async def test_blank_ids_are_rejected(self, photo_service):
        with pytest.raises(ValidationException) as exc:
            await photo_service.get("  ")
        assert exc.value.field == "photoId"

        with pytest.raises(ValidationException) as exc:
            await photo_service.list_by_coffee_date("")
        assert exc.value.field == "coffeeDateId"

    async def test_thumbnail_url_falls_back_to_original(self, photo_service, blob_store):
        [photo] = await photo_service.upload_many([PhotoUploadFactory.create()])
        await photo_service.repo.update_fields(photo.id, {"thumbnailS3Key": ""})

        fetched = await photo_service.get(photo.id)

        assert fetched.thumbnail_url == fetched.s3_url

    async def test_associate_moves_photos(self, photo_service):
        photos = await photo_service.upload_many(
            [PhotoUploadFactory.create(), PhotoUploadFactory.create()]
        )

        await photo_service.associate([p.id for p in photos], "cd-9")

        assert await photo_service.list_unassigned() == []
        owned = await photo_service.list_by_coffee_date("cd-9")
        assert sorted(p.id for p in owned) == sorted(p.id for p in photos)
        assert all(p.coffee_date_id == "cd-9" for p in owned)

    async def test_associate_unknown_photo(self, photo_service):
        with pytest.raises(NotFoundException):
            await photo_service.associate(["ghost"], "cd-9")


@pytest.mark.asyncio
class TestDelete:
    """Test PhotoService.delete."""

    async def test_delete_removes_blobs_and_row(self, photo_service, blob_store):
        [photo] = await photo_service.upload_many([PhotoUploadFactory.create()])

        await photo_service.delete(photo.id)

        assert blob_store.objects == {}
        assert await photo_service.get(photo.id) is None

    async def test_second_delete_is_not_found(self, photo_service):
        [photo] = await photo_service.upload_many([PhotoUploadFactory.create()])
        await photo_service.delete(photo.id)

        with pytest.raises(NotFoundException):
            await photo_service.delete(photo.id)

    async def test_blob_failure_keeps_row(self, photo_service, blob_store):
        [photo] = await photo_service.upload_many([PhotoUploadFactory.create()])
        blob_store.fail_deletes = True

        with pytest.raises(StorageException):
            await photo_service.delete(photo.id)

        assert await photo_service.get(photo.id) is not None

    async def test_delete_detaches_from_coffee_date(self, photo_service, coffee_date_service):
        coffee_date = await coffee_date_service.create(CoffeeDatePayloadFactory.create())
        photos = await photo_service.upload_many(
            [PhotoUploadFactory.create(), PhotoUploadFactory.create()],
            coffee_date_id=coffee_date.id,
        )
        await coffee_date_service.add_photos(coffee_date.id, [p.id for p in photos])

        await photo_service.delete(photos[0].id)

        updated = await coffee_date_service.get_by_id(coffee_date.id)
        assert updated.photo_ids == [photos[1].id]
        assert updated.primary_photo_id == photos[1].id
        assert [p.id for p in updated.photos] == [photos[1].id]

    async def test_detach_conflict_keeps_blobs(
        self, photo_service, coffee_date_service, blob_store, monkeypatch
    ):
        """Test a lost detach race leaves the photo row and its blobs in place."""
        coffee_date = await coffee_date_service.create(CoffeeDatePayloadFactory.create())
        [photo] = await photo_service.upload_many(
            [PhotoUploadFactory.create()], coffee_date_id=coffee_date.id
        )
        await coffee_date_service.add_photos(coffee_date.id, [photo.id])

        stale = await photo_service.coffee_date_repo.get(coffee_date.id)
        await coffee_date_service.update(coffee_date.id, {"ratings": {"coffee": 2}})

        async def stale_get(coffee_date_id):
            return stale

        monkeypatch.setattr(photo_service.coffee_date_repo, "get", stale_get)

        with pytest.raises(ConflictException):
            await photo_service.delete(photo.id)

        assert await photo_service.get(photo.id) is not None
        assert photo.s3_key in blob_store.objects
        assert len(blob_store.objects) == 2


@pytest.mark.asyncio
class TestThumbnails:
    """Test thumbnail regeneration."""

    async def test_thumbnail_for_existing_original(self, photo_service, blob_store):
        blob_store.objects["originals/2024/03/15/abc-flat-white.png"] = make_image_bytes(fmt="PNG")

        key = await photo_service.thumbnail_for("originals/2024/03/15/abc-flat-white.png")

        assert key == "thumbnails/2024/03/15/thumb-abc-flat-white.jpg"
        assert blob_store.content_types[key] == "image/jpeg"

    async def test_thumbnail_for_missing_original(self, photo_service):
        with pytest.raises(StorageException):
            await photo_service.thumbnail_for("originals/2024/03/15/missing.jpg")

    async def test_backfill_only_touches_rows_without_thumbnail(self, photo_service, blob_store):
        photos = await photo_service.upload_many(
            [PhotoUploadFactory.create(), PhotoUploadFactory.create()]
        )
        await photo_service.repo.update_fields(photos[0].id, {"thumbnailS3Key": ""})

        updated = await photo_service.backfill_thumbnails()

        assert updated == 1
        record = await photo_service.repo.get(photos[0].id)
        assert record["thumbnailS3Key"].startswith("thumbnails/")
        assert "/thumb-" in record["thumbnailS3Key"]
        assert record["thumbnailS3Key"] in blob_store.objects

    async def test_signed_url(self, photo_service, blob_store):
        url = await photo_service.signed_url("originals/x.jpg")
        assert url == blob_store.public_url("originals/x.jpg")
