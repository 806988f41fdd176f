"""API middleware for request timing and request IDs."""
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Middleware to track request timing and add request IDs."""

    def __init__(self, app: ASGIApp, slow_threshold: float = SLOW_REQUEST_SECONDS):
        super().__init__(app)
        self.slow_threshold = slow_threshold

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Process request with timing."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.3f}"

        if process_time > self.slow_threshold:
            logger.warning(
                f"SLOW REQUEST [{request_id}]: "
                f"{request.method} {request.url.path} "
                f"took {process_time:.3f}s"
            )
        else:
            logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")

        return response
