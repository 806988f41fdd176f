"""Blob storage for photo originals and thumbnails."""
import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from coffee_chronicles.core.config import Settings, settings as default_settings
from coffee_chronicles.core.exceptions import StorageException

logger = logging.getLogger(__name__)


class BlobStore:
    """Key-addressed binary object storage."""

    bucket: str = ""

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    async def get(self, key: str) -> bytes:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        raise NotImplementedError

    async def exists(self, key: str) -> bool:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        raise NotImplementedError

    async def signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Time-limited URL for a private object."""
        return self.public_url(key)


class FileSystemBlobStore(BlobStore):
    """Stores objects as files under a root directory."""

    def __init__(self, root: Path, url_prefix: str = "/media", bucket: str = "local"):
        """
        Initialize filesystem store.

        Args:
            root: Directory objects are stored under
            url_prefix: URL path the root is served from
            bucket: Name recorded as the bucket of stored objects
        """
        self.root = Path(root).resolve()
        self.url_prefix = url_prefix.rstrip("/")
        self.bucket = bucket
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not key or not path.is_relative_to(self.root):
            raise StorageException(f"Invalid object key {key!r}")
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageException(f"Failed to save file {key}: {e}")

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageException(f"File not found: {key}")
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise StorageException(f"Failed to read file {key}: {e}")

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            raise StorageException(f"Failed to delete file {key}: {e}")

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}/{quote(key)}"


class S3BlobStore(BlobStore):
    """Stores objects in an S3 (or S3-compatible) bucket."""

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url

        if client is None:
            client_kwargs = dict(
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
            if endpoint_url:
                # Path style for MinIO and other S3-compatible endpoints
                client_kwargs["endpoint_url"] = endpoint_url
                client_kwargs["config"] = Config(s3={"addressing_style": "path"})
            client = boto3.session.Session().client("s3", **client_kwargs)
        self._s3 = client

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageException(f"Failed to upload {key} to {self.bucket}: {e}")

    async def get(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self._s3.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_read)
        except (BotoCoreError, ClientError) as e:
            raise StorageException(f"Failed to retrieve {key} from {self.bucket}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageException(f"Failed to delete {key} from {self.bucket}: {e}")

    async def exists(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self._s3.head_object, Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageException(f"Failed to check {key} in {self.bucket}: {e}")
        except BotoCoreError as e:
            raise StorageException(f"Failed to check {key} in {self.bucket}: {e}")

    def public_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quote(key)}"
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(key)}"

    async def signed_url(self, key: str, expires_in: int = 3600) -> str:
        try:
            return await asyncio.to_thread(
                self._s3.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageException(f"Failed to sign URL for {key}: {e}")


def create_blob_store(config: Optional[Settings] = None) -> BlobStore:
    """Build the blob store selected by ``blob_backend``."""
    config = config or default_settings
    if config.blob_backend == "s3":
        logger.info(f"Using S3 blob store (bucket={config.s3_bucket_name})")
        return S3BlobStore(
            bucket=config.s3_bucket_name,
            region=config.aws_region,
            endpoint_url=config.s3_endpoint_url,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
        )
    if config.blob_backend == "filesystem":
        logger.info(f"Using filesystem blob store at {config.storage_root}")
        return FileSystemBlobStore(config.storage_root, url_prefix=config.media_url_prefix)
    raise StorageException(f"Unknown blob backend {config.blob_backend!r}")
