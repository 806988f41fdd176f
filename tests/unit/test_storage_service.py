"""Unit tests for the blob stores."""
from __future__ import annotations

import boto3
import pytest
from botocore.stub import Stubber

from coffee_chronicles.core.config import Settings
from coffee_chronicles.core.exceptions import StorageException
from coffee_chronicles.services import (
    FileSystemBlobStore,
    S3BlobStore,
    create_blob_store,
)


@pytest.fixture
def fs_store(tmp_path) -> FileSystemBlobStore:
    return FileSystemBlobStore(tmp_path / "media", url_prefix="/media")


@pytest.mark.asyncio
class TestFileSystemBlobStore:
    """Test FileSystemBlobStore."""

    async def test_put_get_delete(self, fs_store):
        key = "originals/2024/03/15/abc-latte.jpg"

        await fs_store.put(key, b"bytes", "image/jpeg")

        assert await fs_store.exists(key)
        assert await fs_store.get(key) == b"bytes"
        assert (fs_store.root / key).is_file()

        await fs_store.delete(key)
        assert not await fs_store.exists(key)

    async def test_delete_missing_is_not_an_error(self, fs_store):
        await fs_store.delete("originals/never-written.jpg")

    async def test_get_missing(self, fs_store):
        with pytest.raises(StorageException):
            await fs_store.get("originals/never-written.jpg")

    @pytest.mark.parametrize("key", ["../escape.jpg", "originals/../../escape.jpg", ""])
    async def test_rejects_keys_outside_root(self, fs_store, key):
        with pytest.raises(StorageException):
            await fs_store.put(key, b"x", "image/jpeg")

    async def test_public_url(self, fs_store):
        assert fs_store.public_url("thumbnails/a b.jpg") == "/media/thumbnails/a%20b.jpg"
        assert await fs_store.signed_url("thumbnails/a.jpg") == "/media/thumbnails/a.jpg"


def make_s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.mark.asyncio
class TestS3BlobStore:
    """Test S3BlobStore against a stubbed boto3 client."""

    async def test_put(self):
        client = make_s3_client()
        store = S3BlobStore("photos", "us-east-1", client=client)

        with Stubber(client) as stub:
            stub.add_response(
                "put_object",
                {},
                {"Bucket": "photos", "Key": "originals/a.jpg", "Body": b"data", "ContentType": "image/jpeg"},
            )
            await store.put("originals/a.jpg", b"data", "image/jpeg")
            stub.assert_no_pending_responses()

    async def test_delete(self):
        client = make_s3_client()
        store = S3BlobStore("photos", "us-east-1", client=client)

        with Stubber(client) as stub:
            stub.add_response("delete_object", {}, {"Bucket": "photos", "Key": "originals/a.jpg"})
            await store.delete("originals/a.jpg")
            stub.assert_no_pending_responses()

    async def test_client_error_becomes_storage_error(self):
        client = make_s3_client()
        store = S3BlobStore("photos", "us-east-1", client=client)

        with Stubber(client) as stub:
            stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
            with pytest.raises(StorageException):
                await store.put("originals/a.jpg", b"data", "image/jpeg")

    async def test_exists(self):
        client = make_s3_client()
        store = S3BlobStore("photos", "us-east-1", client=client)

        with Stubber(client) as stub:
            stub.add_response("head_object", {}, {"Bucket": "photos", "Key": "a.jpg"})
            stub.add_client_error("head_object", service_error_code="404", http_status_code=404)
            assert await store.exists("a.jpg")
            assert not await store.exists("b.jpg")

    async def test_urls(self):
        store = S3BlobStore("photos", "us-east-1", client=make_s3_client())

        assert store.public_url("originals/a.jpg") == "https://photos.s3.amazonaws.com/originals/a.jpg"

        signed = await store.signed_url("originals/a.jpg", expires_in=60)
        assert "originals/a.jpg" in signed
        assert "Expires=" in signed or "X-Amz-Expires=60" in signed

    async def test_custom_endpoint_url(self):
        store = S3BlobStore(
            "photos",
            "us-east-1",
            endpoint_url="http://minio:9000/",
            client=make_s3_client(),
        )
        assert store.public_url("a.jpg") == "http://minio:9000/photos/a.jpg"


def test_create_blob_store_filesystem(tmp_path):
    config = Settings(blob_backend="filesystem", storage_root=tmp_path / "blobs")
    store = create_blob_store(config)
    assert isinstance(store, FileSystemBlobStore)
    assert store.root == (tmp_path / "blobs").resolve()


def test_create_blob_store_s3():
    config = Settings(
        blob_backend="s3",
        s3_bucket_name="chronicles",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    store = create_blob_store(config)
    assert isinstance(store, S3BlobStore)
    assert store.bucket == "chronicles"
