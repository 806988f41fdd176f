"""Pytest configuration and fixtures."""
from __future__ import annotations

from typing import AsyncGenerator, Dict, Iterable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from coffee_chronicles.api.dependencies import get_blob_store, get_session_service
from coffee_chronicles.core.config import settings
from coffee_chronicles.core.database import Base, get_db
from coffee_chronicles.core.exceptions import StorageException
from coffee_chronicles.core.redis import get_redis
from coffee_chronicles.main import app
from coffee_chronicles.models import database  # noqa: F401
from coffee_chronicles.services import (
    BlobStore,
    CoffeeDateService,
    PhotoService,
    SessionService,
    ThumbnailService,
)

# Each test gets its own in-memory database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct horse battery staple"


class InMemoryBlobStore(BlobStore):
    """Blob store keeping objects in a dict. Keys containing a ``fail_on`` marker fail to write."""

    def __init__(self, fail_on: Iterable[str] = ()):
        self.bucket = "test-bucket"
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_on = set(fail_on)
        self.fail_deletes = False

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        if any(marker in key for marker in self.fail_on):
            raise StorageException(f"Simulated failure writing {key}")
        self.objects[key] = data
        self.content_types[key] = content_type

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise StorageException(f"File not found: {key}")
        return self.objects[key]

    async def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise StorageException(f"Simulated failure deleting {key}")
        self.objects.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self.objects

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.example.com/{key}"


class FakeRedis:
    """Dict-backed stand-in for RedisClient."""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self.values[key] = value
        self.ttls[key] = ex

    async def delete(self, key: str):
        self.values.pop(key, None)
        self.ttls.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self.values

    async def ping(self) -> bool:
        return True

    def expire_all(self):
        """Drop every key, as if every TTL elapsed."""
        self.values.clear()
        self.ttls.clear()


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,  # One shared connection keeps the in-memory database alive
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def thumbnail_service() -> ThumbnailService:
    return ThumbnailService(width=400, height=400, quality=80)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def photo_service(db_session, blob_store, thumbnail_service) -> PhotoService:
    return PhotoService(db_session, blob_store, thumbnail_service)


@pytest.fixture
def coffee_date_service(db_session, photo_service) -> CoffeeDateService:
    return CoffeeDateService(db_session, photo_service)


@pytest.fixture
def session_service(fake_redis) -> SessionService:
    return SessionService(fake_redis, password=TEST_PASSWORD, ttl_seconds=3600)


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory,
    blob_store: InMemoryBlobStore,
    fake_redis: FakeRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database, blob store and Redis overrides."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_session_service] = lambda: SessionService(
        fake_redis, password=TEST_PASSWORD, ttl_seconds=3600
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def auth_client(client: AsyncClient, fake_redis: FakeRedis) -> AsyncClient:
    """HTTP client carrying a live session cookie."""
    sessions = SessionService(fake_redis, password=TEST_PASSWORD, ttl_seconds=3600)
    result = await sessions.authenticate(TEST_PASSWORD)
    client.cookies.set(settings.auth_cookie_name, result.token)
    return client
