"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from coffee_chronicles import __version__
from coffee_chronicles.api.dependencies import close_http_client
from coffee_chronicles.api.middleware import RequestTimingMiddleware
from coffee_chronicles.api.routes import api_router
from coffee_chronicles.core.config import settings
from coffee_chronicles.core.database import close_db, init_db
from coffee_chronicles.core.exceptions import ChroniclesException
from coffee_chronicles.core.logging_config import configure_logging
from coffee_chronicles.core.redis import redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    configure_logging()
    logger.info(f"Starting Coffee Date Chronicles {__version__}")
    logger.info(f"Blob backend: {settings.blob_backend}")
    logger.info(
        f"Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else settings.database_url}"
    )

    settings.ensure_directories_exist()
    if settings.database_url.startswith("sqlite"):
        await init_db()

    yield

    logger.info("Shutting down Coffee Date Chronicles")
    await close_http_client()
    await redis_client.disconnect()
    await close_db()


app = FastAPI(
    title="Coffee Date Chronicles API",
    description="Coffee dates with café info, ratings and photos",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(ChroniclesException)
async def chronicles_exception_handler(request: Request, exc: ChroniclesException):
    """Render domain errors as {"error", "field"?} with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.message}")

    content = {"error": exc.message}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors."""
    errors = exc.errors()
    logger.warning(f"Invalid request on {request.method} {request.url.path}: {errors}")

    content = {"error": "Invalid request data", "details": jsonable_encoder(errors)}
    if errors:
        # drop the body/query/path prefix from the location
        location = [str(part) for part in errors[0].get("loc", ())][1:]
        if location:
            content["field"] = ".".join(location)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with logging."""
    logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    logger.exception(f"Unhandled exception on {request.method} {request.url}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestTimingMiddleware)

app.include_router(api_router)

if settings.blob_backend == "filesystem":
    app.mount(
        settings.media_url_prefix,
        StaticFiles(directory=settings.storage_root, check_dir=False),
        name="media",
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Coffee Date Chronicles API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coffee_chronicles.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )
