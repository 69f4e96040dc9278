"""
Video Relay FastAPI Application Entry Point

Accepts video uploads, stores them in a Google Drive folder under a canonical
name and returns the Drive file id and share link.

- Lifespan: logging setup, service account bootstrap, Drive client and Redis
- CORS and request logging middleware
- Exception handlers rendering every error as ``{"error", "details"}``
- Root and health endpoints

Usage:
    uvicorn video_relay.main:app --host 0.0.0.0 --port 3000

    video-relay
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from video_relay import __app_name__, __version__
from video_relay.api import api_router
from video_relay.config import get_settings
from video_relay.core.credentials import load_credentials
from video_relay.core.drive import init_drive_client, reset_drive_client
from video_relay.core.redis_client import close_redis, init_redis
from video_relay.exceptions import UnimplementedError, VideoRelayError
from video_relay.models.upload import HealthResponse
from video_relay.utils.logger import setup_logging


logger = logging.getLogger(__name__)

HTTP_ERROR_THRESHOLD = 400
HTTP_SERVER_ERROR_THRESHOLD = 500
GENERIC_ERROR_DETAILS = "An unexpected error occurred. Please try again later."


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Startup: configure logging, decode the service account key, build the
    Drive client and connect Redis. A missing or malformed key raises
    CredentialsError and aborts startup.

    Shutdown: close Redis and drop the Drive client.
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    logger.info("%s starting", settings.app_name)
    logger.info("Environment: %s", settings.app_env)
    logger.info("Drive folder: %s", settings.drive_folder_id)
    logger.info("Host: %s:%s", settings.host, settings.port)

    credentials = load_credentials(settings)
    init_drive_client(credentials, settings)

    if settings.rate_limit_enabled:
        redis_client = await init_redis(settings)
        if redis_client is None:
            logger.warning("Application will continue without upload rate limiting")

    logger.info("%s ready to accept uploads", settings.app_name)

    yield

    logger.info("%s shutting down", settings.app_name)
    try:
        await close_redis()
    except Exception:
        logger.exception("Error closing Redis connection")
    reset_drive_client()
    logger.info("%s shutdown complete", settings.app_name)


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="Video Relay API",
    description=(
        "Receives video uploads, names them after the person in the video and the "
        "capture time, and stores them in a shared Google Drive folder."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=_settings.debug,
)


# =============================================================================
# Middleware Configuration
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials="*" not in _settings.cors_origins,
    allow_methods=_settings.cors_methods,
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """Log each request and add X-Request-ID and X-Process-Time headers."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    start_time = time.perf_counter()

    logger.debug("Request started: %s %s [Request-ID: %s]", request.method, request.url.path, request_id)

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Request failed: %s %s [Request-ID: %s]", request.method, request.url.path, request_id
        )
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.INFO if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        "Request completed: %s %s [Status: %d] [Time: %sms] [Request-ID: %s]",
        request.method,
        request.url.path,
        response.status_code,
        process_time_ms,
        request_id,
    )
    return response


# =============================================================================
# Router Registration
# =============================================================================

app.include_router(api_router)


# =============================================================================
# Core Endpoints
# =============================================================================


@app.get("/", tags=["root"], summary="API Root")
async def root() -> dict[str, Any]:
    """Service name, version and route map."""
    return {
        "name": __app_name__,
        "version": __version__,
        "description": "Video upload relay to Google Drive",
        "documentation": {"swagger": "/docs", "redoc": "/redoc", "openapi": "/openapi.json"},
        "endpoints": {
            "upload": "POST /upload-video",
            "upload_for_person": "POST /upload-video/{personName}",
            "upload_chunked": "POST /upload-video-chunked",
            "fix_mime": "PATCH /fix-video-mime/{fileId}",
            "health": "GET /health",
        },
    }


@app.get("/health", response_model=HealthResponse, tags=["health"], summary="Health Check")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="OK",
        service=__app_name__,
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(status_code: int, error: str, details: str | None, **extra: Any) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(VideoRelayError)
async def relay_error_handler(request: Request, exc: VideoRelayError) -> JSONResponse:
    """
    Render relay exceptions with their status and ``error`` summary.

    Server-side details are replaced by a generic sentence in production.
    """
    details: str | None = exc.details
    if exc.status_code >= HTTP_SERVER_ERROR_THRESHOLD:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        if not get_settings().expose_error_details:
            details = GENERIC_ERROR_DETAILS
    else:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)

    suggestion = exc.suggestion if isinstance(exc, UnimplementedError) else None
    return _error_response(exc.status_code, exc.error, details, suggestion=suggestion)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 400 in the common error shape."""
    problems = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    ]
    return _error_response(400, "Invalid request", "; ".join(problems) or None)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error_response(404, "Not Found", f"The requested path '{request.url.path}' was not found")
    return _error_response(exc.status_code, str(exc.detail), None)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for anything the routes did not map."""
    logger.error(
        "Internal server error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    details = str(exc) if get_settings().expose_error_details else GENERIC_ERROR_DETAILS
    return _error_response(500, "Internal Server Error", details)


# =============================================================================
# Main Execution Block
# =============================================================================


def run() -> None:
    """Run the API server with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "video_relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
        access_log=settings.debug,
    )


if __name__ == "__main__":
    run()
