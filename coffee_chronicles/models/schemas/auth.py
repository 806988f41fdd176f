"""Authentication Pydantic schemas."""
from typing import Optional

from pydantic import Field

from .common import CamelModel, Timestamp


class LoginRequest(CamelModel):
    password: str = Field(..., min_length=1, description="Shared password")


class AuthResult(CamelModel):
    """Outcome of a password check."""

    success: bool
    token: Optional[str] = None
    expires_at: Optional[Timestamp] = None


class LoginResponse(CamelModel):
    success: bool = True
    expires_at: Timestamp


class VerifyResponse(CamelModel):
    authenticated: bool
