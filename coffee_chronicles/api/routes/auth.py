"""Authentication API routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response

from coffee_chronicles.api.dependencies import get_session_service, get_session_token
from coffee_chronicles.core.config import settings
from coffee_chronicles.core.exceptions import AuthenticationException
from coffee_chronicles.models.schemas import (
    LoginRequest,
    LoginResponse,
    SuccessResponse,
    VerifyResponse,
)
from coffee_chronicles.services import SessionService

router = APIRouter(prefix="/auth")


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
):
    """
    Log in with the shared password.

    On success the session token is set as an httpOnly cookie.
    """
    result = await sessions.authenticate(credentials.password)
    if not result.success:
        raise AuthenticationException("Invalid password")

    response.set_cookie(
        key=settings.auth_cookie_name,
        value=result.token,
        max_age=sessions.ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
        path="/",
    )
    return LoginResponse(expires_at=result.expires_at)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    sessions: SessionService = Depends(get_session_service),
):
    """End the current session and clear the cookie."""
    await sessions.revoke(token)
    response.delete_cookie(key=settings.auth_cookie_name, path="/")
    return SuccessResponse()


@router.get("/verify", response_model=VerifyResponse)
async def verify(
    token: Optional[str] = Depends(get_session_token),
    sessions: SessionService = Depends(get_session_service),
):
    """Report whether the request carries a live session."""
    return VerifyResponse(authenticated=await sessions.verify(token))
