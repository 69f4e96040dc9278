"""
Google Drive v3 client for the video relay.

Wraps the three Drive operations the relay needs: creating a file in the
destination folder, granting anyone-with-the-link read access, and updating a
file's content type. ``google-api-python-client`` is synchronous, so every
call runs in a worker thread through ``asyncio.to_thread``. Each call gets its
own authorized ``httplib2.Http`` because httplib2 transports are not safe to
share between threads.

Usage:
    ```python
    from video_relay.core.drive import get_drive_client

    drive = get_drive_client()
    with open("clip.mp4", "rb") as stream:
        reference = await drive.create_file("Alice_2024-01-02_03-04-05.mp4", "video/mp4", stream)
    await drive.grant_public_read(reference.id)
    ```
"""

import asyncio
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any, BinaryIO, TypeVar

import httplib2
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest, MediaIoBaseUpload

from video_relay.config import Settings, get_settings
from video_relay.exceptions import DownstreamError, RemoteNotFoundError
from video_relay.models.upload import RemoteObjectReference


logger = logging.getLogger(__name__)

T = TypeVar("T")

FILE_FIELDS = "id,name,webViewLink,mimeType,size"
PUBLIC_READ_PERMISSION: dict[str, str] = {"type": "anyone", "role": "reader"}

_singleton_container: dict[str, "DriveClient"] = {}


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """Run a blocking Drive call in a worker thread."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    return wrapper


class DriveClient:
    """
    Drive v3 wrapper bound to one destination folder.

    Attributes:
        settings: Application settings (folder id, timeout, retries).
        credentials: Service account credentials, None when a prebuilt
            ``service`` handles its own auth.
        folder_id: Parent folder of every created file.
    """

    def __init__(
        self,
        credentials: Credentials | None,
        settings: Settings | None = None,
        *,
        service: Any | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.credentials = credentials
        self.folder_id = self.settings.drive_folder_id
        self.num_retries = self.settings.drive_num_retries
        self.timeout = self.settings.drive_timeout_seconds

        if service is None:
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        self._service = service

        logger.info(
            "Drive client initialized",
            extra={"folder_id": self.folder_id, "timeout": self.timeout, "num_retries": self.num_retries},
        )

    def _authorized_http(self) -> AuthorizedHttp | None:
        if self.credentials is None:
            return None
        return AuthorizedHttp(self.credentials, http=httplib2.Http(timeout=self.timeout))

    def _execute(self, request: HttpRequest, operation: str, file_ref: str) -> dict[str, Any]:
        """
        Execute a prepared request, mapping failures to relay exceptions.

        Transient transport errors, 5xx and 429 responses are retried by the
        client library up to ``num_retries`` times. Other 4xx are not.
        """
        try:
            return request.execute(http=self._authorized_http(), num_retries=self.num_retries)
        except HttpError as e:
            status_code = getattr(e.resp, "status", None)
            reason = getattr(e, "reason", None) or str(e)
            if status_code == 404:
                raise RemoteNotFoundError(f"File not found: {file_ref}") from e
            logger.exception("Drive %s failed for %s (HTTP %s)", operation, file_ref, status_code)
            raise DownstreamError(f"Drive {operation} failed ({status_code}): {reason}") from e
        except GoogleAuthError as e:
            logger.exception("Drive authentication failed during %s", operation)
            raise DownstreamError(f"Drive authentication failed: {e}") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            logger.exception("Drive %s transport error for %s", operation, file_ref)
            raise DownstreamError(f"Drive {operation} failed: {e}") from e

    # =========================================================================
    # Operations
    # =========================================================================

    async def create_file(self, name: str, mime_type: str, stream: BinaryIO) -> RemoteObjectReference:
        """
        Create a file in the destination folder from ``stream``.

        Args:
            name: Stored filename.
            mime_type: Content type for both the metadata and the media body.
            stream: Readable binary stream positioned at the start of the bytes.

        Returns:
            Reference to the created file.

        Raises:
            DownstreamError: On any Drive failure.
        """
        metadata = {"name": name, "parents": [self.folder_id], "mimeType": mime_type}

        @async_wrap
        def _create() -> dict[str, Any]:
            media = MediaIoBaseUpload(stream, mimetype=mime_type, resumable=False)
            request = self._service.files().create(body=metadata, media_body=media, fields=FILE_FIELDS)
            return self._execute(request, "create", name)

        payload = await _create()
        logger.info("Created Drive file %s (%s)", payload.get("id"), name)
        return RemoteObjectReference.from_drive(payload)

    async def grant_public_read(self, file_id: str) -> None:
        """
        Allow anyone with the link to read ``file_id``.

        Raises:
            RemoteNotFoundError: If the file does not exist.
            DownstreamError: On any other Drive failure.
        """

        @async_wrap
        def _grant() -> dict[str, Any]:
            request = self._service.permissions().create(
                fileId=file_id, body=dict(PUBLIC_READ_PERMISSION), fields="id"
            )
            return self._execute(request, "permission grant", file_id)

        await _grant()
        logger.info("Granted public read on Drive file %s", file_id)

    async def update_mime_type(self, file_id: str, mime_type: str) -> RemoteObjectReference:
        """
        Set the stored content type of ``file_id`` without touching its bytes.

        Raises:
            RemoteNotFoundError: If the file does not exist.
            DownstreamError: On any other Drive failure.
        """

        @async_wrap
        def _update() -> dict[str, Any]:
            request = self._service.files().update(
                fileId=file_id, body={"mimeType": mime_type}, fields=FILE_FIELDS
            )
            return self._execute(request, "update", file_id)

        payload = await _update()
        logger.info("Updated Drive file %s to %s", file_id, mime_type)
        return RemoteObjectReference.from_drive(payload)


# =============================================================================
# Singleton management
# =============================================================================


def init_drive_client(credentials: Credentials, settings: Settings | None = None) -> DriveClient:
    """Create the process-wide DriveClient. Called once from the lifespan."""
    _singleton_container["instance"] = DriveClient(credentials, settings)
    return _singleton_container["instance"]


def get_drive_client() -> DriveClient:
    """
    Return the process-wide DriveClient.

    Raises:
        RuntimeError: If called before ``init_drive_client``.
    """
    try:
        return _singleton_container["instance"]
    except KeyError:
        raise RuntimeError("Drive client not initialized. Call init_drive_client() first.") from None


def reset_drive_client() -> None:
    """Forget the process-wide DriveClient."""
    _singleton_container.pop("instance", None)
