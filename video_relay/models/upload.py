"""
Upload models for the video relay.

``IncomingUpload`` is the request-scoped handle on a staged upload and owns
its temporary file. The Pydantic models describe Drive references and the
JSON bodies of the HTTP routes, serialized with the camelCase keys existing
clients expect.
"""

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)


# =============================================================================
# Incoming Upload
# =============================================================================


@dataclass
class IncomingUpload:
    """
    A received upload, staged on disk or held in memory.

    Exactly one of ``path`` and ``data`` carries the bytes. ``release()``
    deletes the staged file; it is safe to call any number of times and only
    the first call does any work.

    Attributes:
        filename: Original client filename.
        content_type: Client-declared content type, possibly missing or wrong.
        size: Number of bytes received.
        path: Staged file on local disk.
        data: In-memory bytes when the upload was not staged to disk.
        owns_directory: Whether ``path``'s parent directory was created for
            this upload alone and should be removed with it.
    """

    filename: str
    content_type: str | None
    size: int
    path: Path | None = None
    data: bytes | None = None
    owns_directory: bool = False
    _released: bool = field(default=False, init=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    @property
    def is_empty(self) -> bool:
        return self.size <= 0

    def open(self) -> BinaryIO:
        """Open the upload's bytes for reading."""
        if self._released:
            raise ValueError(f"Upload '{self.filename}' has already been released")
        if self.path is not None:
            return open(self.path, "rb")
        return io.BytesIO(self.data or b"")

    def release(self) -> bool:
        """
        Delete the staged file and drop any buffered bytes.

        Returns:
            True if this call released the upload, False if it was already released.
        """
        if self._released:
            return False
        self._released = True
        self.data = None

        if self.path is None:
            return True

        try:
            self.path.unlink(missing_ok=True)
            if self.owns_directory:
                self.path.parent.rmdir()
            logger.debug("Cleaned up staged upload: %s", self.path)
        except OSError as cleanup_error:
            logger.warning("Failed to clean up staged upload '%s': %s", self.path, cleanup_error)
        return True


# =============================================================================
# Drive references
# =============================================================================


class RemoteObjectReference(BaseModel):
    """A file as reported back by Google Drive."""

    id: str = Field(..., min_length=1, description="Drive file id")
    name: str = Field(..., description="Stored filename")
    mime_type: str | None = Field(default=None, description="Stored content type")
    size: int | None = Field(default=None, ge=0, description="Stored size in bytes")
    web_view_link: str | None = Field(default=None, description="Shareable browser link")

    @classmethod
    def from_drive(cls, payload: dict[str, Any]) -> "RemoteObjectReference":
        """Build a reference from a Drive v3 ``files`` resource."""
        size = payload.get("size")
        return cls(
            id=payload["id"],
            name=payload.get("name", ""),
            mime_type=payload.get("mimeType"),
            size=int(size) if size is not None else None,
            web_view_link=payload.get("webViewLink"),
        )


class UploadResult(BaseModel):
    """Outcome of one pass through the upload pipeline."""

    reference: RemoteObjectReference
    person_name: str = Field(..., description="Sanitized person name")
    upload_date: str = Field(..., description="Capture date as YYYY-MM-DD")
    made_public: bool = Field(default=False, description="Whether a public read grant was requested")


# =============================================================================
# HTTP bodies
# =============================================================================


class CamelModel(BaseModel):
    """Base for JSON bodies exchanged with clients in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadVideoResponse(CamelModel):
    """Response of the upload routes."""

    success: bool = True
    message: str = "Video uploaded successfully to Google Drive"
    file_id: str
    file_name: str
    drive_link: str | None = None
    mime_type: str | None = None
    file_size: int | None = None
    person_name: str
    upload_date: str
    upload_time_ms: int = Field(..., ge=0)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Video uploaded successfully to Google Drive",
                "fileId": "1AbCdEfGhIjK",
                "fileName": "Alice_Smith_2024-01-02_03-04-05.mp4",
                "driveLink": "https://drive.google.com/file/d/1AbCdEfGhIjK/view",
                "mimeType": "video/mp4",
                "fileSize": 2097152,
                "personName": "Alice_Smith",
                "uploadDate": "2024-01-02",
                "uploadTimeMs": 1840,
            }
        },
    )


class ChunkedUploadResponse(CamelModel):
    """Response of the chunked route for files under the threshold."""

    success: bool = True
    message: str = "Video uploaded successfully"
    file_id: str
    file_name: str
    drive_link: str | None = None
    upload_time_ms: int = Field(..., ge=0)


class FixMimeRequest(CamelModel):
    """Body of the MIME repair route."""

    file_name: str | None = Field(default=None, description="Filename whose extension decides the type")


class FixMimeResponse(CamelModel):
    success: bool = True
    message: str = "MIME type updated successfully"
    file_id: str
    file_name: str
    mime_type: str
    drive_link: str | None = None


class HealthResponse(BaseModel):
    status: str = "OK"
    service: str
    version: str
    timestamp: str


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str
    details: str | None = None
    suggestion: str | None = None
