"""Shared-password sessions stored in Redis with a TTL."""
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional

from coffee_chronicles.core.config import settings
from coffee_chronicles.core.redis import RedisClient
from coffee_chronicles.models.schemas import AuthResult
from coffee_chronicles.services.validation import format_timestamp, utc_now

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"


class SessionService:
    """
    Issues, verifies and revokes session tokens.

    A token maps to its expiry in Redis; the key's TTL removes expired
    sessions, so every instance of the API sees the same sessions.
    """

    def __init__(
        self,
        redis: RedisClient,
        password: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.redis = redis
        self.password = password if password is not None else settings.auth_password
        self.ttl_seconds = ttl_seconds or settings.session_ttl_seconds

        if self.password == "dev-password":
            logger.warning("AUTH_PASSWORD is not configured, using the development password")

    @staticmethod
    def _key(token: str) -> str:
        return f"{SESSION_PREFIX}{token}"

    async def authenticate(self, password: str) -> AuthResult:
        """Check the shared password and open a session on success."""
        if not password or not hmac.compare_digest(password.encode(), self.password.encode()):
            logger.info("Rejected login attempt")
            return AuthResult(success=False)

        token = secrets.token_urlsafe(32)
        expires_at = utc_now() + timedelta(seconds=self.ttl_seconds)
        await self.redis.set(self._key(token), format_timestamp(expires_at), ex=self.ttl_seconds)

        return AuthResult(success=True, token=token, expires_at=expires_at)

    async def verify(self, token: Optional[str]) -> bool:
        """True if the token belongs to a live session."""
        if not token:
            return False
        return await self.redis.exists(self._key(token))

    async def revoke(self, token: Optional[str]) -> None:
        """End a session. Unknown tokens are ignored."""
        if token:
            await self.redis.delete(self._key(token))
