"""
Exception hierarchy for the video relay.

Every exception carries the HTTP status it maps to and a short ``error``
summary rendered into the ``{"error", "details"}`` response body by the
handlers registered in ``video_relay.main``.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import status


class VideoRelayError(Exception):
    """Base exception for all relay errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal Server Error"

    def __init__(self, message: str | None = None, *, error: str | None = None) -> None:
        super().__init__(message or self.error)
        if error is not None:
            self.error = error

    @property
    def details(self) -> str:
        return str(self)


# =============================================================================
# Client input errors (400)
# =============================================================================


class ClientInputError(VideoRelayError):
    """Raised when the request itself is invalid. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class MissingFileError(ClientInputError):
    """Raised when no video file was attached to the request."""

    error = "No video file uploaded"


class MissingPersonNameError(ClientInputError):
    """Raised when the person name is absent or empty after trimming."""

    error = "Person name is required"


class MissingFieldError(ClientInputError):
    """Raised when a required JSON body field is missing."""


class UnsupportedFormatError(ClientInputError):
    """Raised when a filename's extension is not a known video extension."""

    error = "Only video files are allowed!"

    def __init__(self, extension: str, filename: str | None = None) -> None:
        self.extension = extension
        shown = extension or "(none)"
        message = f"Unsupported video extension '{shown}'"
        if filename:
            message += f" for file: {filename}"
        super().__init__(message)


class FileTooLargeError(ClientInputError):
    """Raised when an upload exceeds the configured maximum size."""

    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    error = "File too large"


class RateLimitExceededError(ClientInputError):
    """Raised when a client exceeds its upload allowance for the current window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Too many upload requests, please try again later."


# =============================================================================
# Downstream errors (500)
# =============================================================================


class DownstreamError(VideoRelayError):
    """Raised when the remote store fails (unreachable, quota, permissions)."""

    error = "Remote storage request failed"


class RemoteNotFoundError(DownstreamError):
    """Raised when a remote object id does not exist."""

    error = "Remote file not found"


class CredentialsError(VideoRelayError):
    """Raised when the service account key is missing or cannot be decoded."""

    error = "Service credentials unavailable"


# =============================================================================
# Unimplemented (501)
# =============================================================================


class UnimplementedError(VideoRelayError):
    """Raised for features the relay deliberately does not provide."""

    status_code = status.HTTP_501_NOT_IMPLEMENTED
    error = "Not implemented"

    def __init__(
        self,
        message: str | None = None,
        *,
        error: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message, error=error)
        self.suggestion = suggestion


@contextmanager
def downstream_summary(summary: str) -> Iterator[None]:
    """Relabel any DownstreamError raised inside the block with ``summary``."""
    try:
        yield
    except DownstreamError as e:
        e.error = summary
        raise
