"""
FastAPI dependencies shared by the relay routes.

Tests replace ``get_drive``, ``get_clock`` and ``enforce_upload_rate_limit``
through ``app.dependency_overrides``.
"""

import logging

from fastapi import Depends, Request

from video_relay.config import Settings, get_settings
from video_relay.core.drive import DriveClient, get_drive_client
from video_relay.core.redis_client import get_redis_client
from video_relay.exceptions import RateLimitExceededError
from video_relay.services.mime_fixer import MimeTypeFixer
from video_relay.services.upload_service import Clock, UploadPipeline, utc_now


logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "ratelimit:upload:"


def get_drive() -> DriveClient:
    return get_drive_client()


def get_clock() -> Clock:
    return utc_now


def get_upload_pipeline(
    drive: DriveClient = Depends(get_drive),
    clock: Clock = Depends(get_clock),
) -> UploadPipeline:
    return UploadPipeline(drive, clock=clock)


def get_mime_fixer(drive: DriveClient = Depends(get_drive)) -> MimeTypeFixer:
    return MimeTypeFixer(drive)


def get_client_ip(request: Request) -> str:
    """
    Identify the caller for rate limiting.

    Uses the first ``X-Forwarded-For`` hop when present (the relay normally
    runs behind a proxy), otherwise the peer address.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client is not None:
        return request.client.host
    return "unknown"


async def enforce_upload_rate_limit(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Count the request against the caller's fixed window.

    Raises:
        RateLimitExceededError: The caller exceeded ``rate_limit_max_requests``
            in the current window.
    """
    if not settings.rate_limit_enabled:
        return

    redis_client = get_redis_client()
    if redis_client is None:
        logger.debug("Rate limiting skipped: Redis is not available")
        return

    client_ip = get_client_ip(request)
    hits = await redis_client.increment_window(
        f"{RATE_LIMIT_KEY_PREFIX}{client_ip}", settings.rate_limit_window_seconds
    )
    if hits is None:
        logger.warning("Rate limiting skipped for %s: counter unavailable", client_ip)
        return

    if hits > settings.rate_limit_max_requests:
        logger.warning(
            "Upload rate limit exceeded for %s (%d/%d)", client_ip, hits, settings.rate_limit_max_requests
        )
        raise RateLimitExceededError(
            f"Limit of {settings.rate_limit_max_requests} uploads per "
            f"{settings.rate_limit_window_seconds // 60} minutes reached"
        )
