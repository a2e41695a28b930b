"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn farmgirl.main:app --reload

For production, run a single worker process:
    uvicorn farmgirl.main:app --host 0.0.0.0 --port 8000

The metadata index locks and the id clock live in process memory, so two
workers writing the same JSON files could lose entries or issue duplicate
ids. Scale out only with an index backend that does its own locking.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health, images, uploads, video
from .config.settings import get_settings
from .core.media.errors import (
    DecodeFailureError,
    FrameExtractionError,
    InvalidParameterError,
    InvalidReferenceError,
    InvalidTypeError,
    MediaError,
    MediaTimeoutError,
    MissingFieldError,
    MissingKeyError,
    ObjectNotFoundError,
    SourceNotFoundError,
    StorageUnavailableError,
    UnsupportedFormatError,
)

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

# HTTP status per error class; validation errors are the client's fault,
# storage and timeouts are ours and worth retrying
MEDIA_ERROR_STATUS: dict[type[MediaError], int] = {
    InvalidTypeError: 400,
    MissingFieldError: 400,
    MissingKeyError: 400,
    InvalidReferenceError: 400,
    InvalidParameterError: 400,
    UnsupportedFormatError: 400,
    SourceNotFoundError: 404,
    ObjectNotFoundError: 404,
    DecodeFailureError: 422,
    FrameExtractionError: 422,
    MediaTimeoutError: 504,
    StorageUnavailableError: 503,
}


def status_for(error: MediaError) -> int:
    for error_type in type(error).__mro__:
        if error_type in MEDIA_ERROR_STATUS:
            return MEDIA_ERROR_STATUS[error_type]
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs configuration on startup and warns about missing settings.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Media API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "storage": settings.storage_mock_mode,
                "video": settings.video_mock_mode,
                "index": settings.index_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Media API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Media backend for the farm site: direct-to-storage uploads and
        on-demand image derivatives.

        ## Upload workflow

        1. `POST /upload/presign/{type}` - get a presigned PUT URL and key
        2. PUT the file to that URL
        3. `POST /upload/complete` - record the entry
        4. For videos: `POST /video/poster` - generate a poster frame

        ## Reading

        - `GET /data/{type}` - entries, newest first
        - `GET /img/{key}?w=&h=&f=&q=` - redirect to a cached derivative

        Write endpoints require an admin key in the `X-API-Key` header.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(uploads.router, tags=["Uploads"])
    app.include_router(images.router, tags=["Images"])
    app.include_router(video.router, tags=["Video"])

    @app.exception_handler(MediaError)
    async def media_error_handler(request: Request, exc: MediaError):
        """Translate domain errors into JSON with a stable `kind`."""
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            "Media operation failed",
            extra={
                "path": request.url.path,
                "kind": exc.kind,
                "error": str(exc),
            }
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "success": False,
                "error": str(exc),
                "kind": exc.kind,
                "retryable": exc.retryable,
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "farmgirl.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
