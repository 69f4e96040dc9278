"""Upload handles, Drive references and HTTP body models."""

from video_relay.models.upload import (
    ChunkedUploadResponse,
    ErrorResponse,
    FixMimeRequest,
    FixMimeResponse,
    HealthResponse,
    IncomingUpload,
    RemoteObjectReference,
    UploadResult,
    UploadVideoResponse,
)


__all__ = [
    "ChunkedUploadResponse",
    "ErrorResponse",
    "FixMimeRequest",
    "FixMimeResponse",
    "HealthResponse",
    "IncomingUpload",
    "RemoteObjectReference",
    "UploadResult",
    "UploadVideoResponse",
]
