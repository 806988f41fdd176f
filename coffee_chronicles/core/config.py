"""Application configuration management."""
from pathlib import Path
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (record store)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./coffee_chronicles.db",
        description="SQLAlchemy async URL (postgresql+asyncpg://... in production)"
    )
    database_pool_size: int = Field(default=10, description="Database connection pool size")
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    table_prefix: str = Field(
        default="coffee-date-chronicles",
        description="Prefix for the logical coffee-date and photo tables"
    )

    # Redis (session store)
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    # Blob storage
    blob_backend: str = Field(default="filesystem", description="Blob store backend (filesystem, s3)")
    storage_root: Path = Field(default=Path("./media"), description="Root directory for the filesystem backend")
    media_url_prefix: str = Field(default="/media", description="URL prefix the filesystem backend is served under")
    s3_bucket_name: str = Field(default="coffee-date-chronicles-photos", description="S3 bucket for photos")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Custom S3 endpoint (MinIO etc.)")
    aws_region: str = Field(default="us-east-1", description="AWS region")
    aws_access_key_id: Optional[str] = Field(default=None, description="AWS access key")
    aws_secret_access_key: Optional[str] = Field(default=None, description="AWS secret key")

    # Uploads
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, description="Maximum size of one uploaded photo")
    allowed_content_types: List[str] = Field(
        default=["image/jpeg", "image/png", "image/webp"],
        description="Accepted photo content types"
    )

    # Thumbnails (centre-cropped to a fixed box)
    thumbnail_width: int = Field(default=400, description="Thumbnail width in pixels")
    thumbnail_height: int = Field(default=400, description="Thumbnail height in pixels")
    thumbnail_quality: int = Field(default=80, description="JPEG quality (1-100)")

    # Authentication
    auth_password: str = Field(default="dev-password", description="Shared password for write access")
    session_ttl_seconds: int = Field(default=24 * 60 * 60, description="Session lifetime in seconds")
    auth_cookie_name: str = Field(default="auth-token", description="Session cookie name")
    cookie_secure: bool = Field(default=False, description="Mark the session cookie Secure")

    # Places provider
    google_maps_api_key: str = Field(default="", description="Google Maps API key")
    google_maps_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api",
        description="Google Maps web API base URL"
    )
    places_timeout_seconds: float = Field(default=10.0, description="Places provider request timeout")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Log file path")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("cors_origins", "allowed_content_types", mode="before")
    @classmethod
    def parse_list(cls, v):
        """Parse list settings from a JSON or comma-separated string."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def coffee_dates_table(self) -> str:
        return f"{self.table_prefix}-coffee-dates"

    @property
    def photos_table(self) -> str:
        return f"{self.table_prefix}-photos"

    def __init__(self, **kwargs):
        """Initialize settings and resolve all paths."""
        super().__init__(**kwargs)
        self.storage_root = self.storage_root.resolve()
        if self.log_file:
            self.log_file = self.log_file.resolve()

    def ensure_directories_exist(self):
        """Create storage and log directories if they don't exist."""
        if self.blob_backend == "filesystem":
            self.storage_root.mkdir(parents=True, exist_ok=True)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)


# Singleton instance; reads from .env in production, overridable in tests
settings = Settings()
