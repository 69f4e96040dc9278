"""
Video Relay Upload Pipeline

Takes one staged upload through to Google Drive:

1. Check that a non-empty file and (unless the original filename is kept) a
   person name are present
2. Pick the content type: a declared ``video/*`` type is kept, anything else
   is resolved from the extension
3. Name the file ``{Person}_{YYYY-MM-DD}_{HH-MM-SS}{ext}``, or keep the
   original filename for pre-named uploads
4. Create the file in the destination Drive folder
5. Optionally grant anyone-with-the-link read access, best effort
6. Release the staged upload

The public grant may run after the response has been sent (``defer``), so a
freshly returned link can be private for a short moment.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from video_relay.core.drive import DriveClient
from video_relay.exceptions import MissingFileError, MissingPersonNameError, VideoRelayError
from video_relay.models.upload import IncomingUpload, UploadResult
from video_relay.utils.logger import add_log_context
from video_relay.utils.mime import resolve_content_type
from video_relay.utils.naming import format_filename, sanitize_person_name


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Defer = Callable[..., Any]


def utc_now() -> datetime:
    return datetime.now(UTC)


class UploadPipeline:
    """
    Upload orchestration over an injected DriveClient.

    Attributes:
        drive: Drive client used for create and permission calls.
        clock: Source of the capture timestamp.

    Example:
        ```python
        pipeline = UploadPipeline(get_drive_client())
        result = await pipeline.upload(incoming, "Alice Smith", defer=background_tasks.add_task)
        print(result.reference.web_view_link)
        ```
    """

    def __init__(self, drive: DriveClient, clock: Clock = utc_now) -> None:
        self.drive = drive
        self.clock = clock

    async def upload(
        self,
        incoming: IncomingUpload | None,
        person_name: str | None = None,
        *,
        make_public: bool = True,
        preserve_filename: bool = False,
        defer: Defer | None = None,
    ) -> UploadResult:
        """
        Upload ``incoming`` to Drive and release it.

        Args:
            incoming: The staged upload, None when the request carried no file.
            person_name: Free-text name used to build the stored filename.
            make_public: Whether to grant anyone-with-the-link read access.
            preserve_filename: Store under the original filename instead of a
                formatted one. ``person_name`` is then optional.
            defer: Scheduler for the permission grant, typically
                ``BackgroundTasks.add_task``. When None the grant is awaited
                before returning.

        Returns:
            The Drive reference with the sanitized person name and upload date.

        Raises:
            MissingFileError: No file, or an empty one.
            MissingPersonNameError: Name required but absent or blank.
            UnsupportedFormatError: Content type cannot be resolved.
            DownstreamError: Drive rejected or failed the create call.
        """
        try:
            if incoming is None or incoming.is_empty:
                raise MissingFileError()

            if not preserve_filename and (not person_name or not person_name.strip()):
                raise MissingPersonNameError()

            content_type = resolve_content_type(incoming.content_type, incoming.filename)

            now = self.clock()
            if preserve_filename:
                destination_name = incoming.filename
            else:
                destination_name = format_filename(person_name, incoming.filename, now)

            upload_logger = add_log_context(
                logger, file_name=destination_name, person_name=person_name, mime_type=content_type
            )
            upload_logger.info(
                "Uploading '%s' (%.2f MB) to Drive", incoming.filename, incoming.size / 1024 / 1024
            )

            with incoming.open() as stream:
                reference = await self.drive.create_file(destination_name, content_type, stream)

            upload_logger.info("Drive upload complete", extra={"file_id": reference.id})

            if make_public:
                if defer is not None:
                    defer(self.grant_public_read, reference.id)
                else:
                    await self.grant_public_read(reference.id)

            return UploadResult(
                reference=reference,
                person_name=sanitize_person_name(person_name or ""),
                upload_date=now.strftime("%Y-%m-%d"),
                made_public=make_public,
            )
        finally:
            if incoming is not None:
                incoming.release()

    async def grant_public_read(self, file_id: str) -> bool:
        """
        Make ``file_id`` readable by anyone with the link.

        Failures are logged and swallowed; the file exists either way and stays
        readable by the service account.

        Returns:
            True if the grant succeeded.
        """
        try:
            await self.drive.grant_public_read(file_id)
        except VideoRelayError as e:
            logger.warning("Failed to set public permissions on %s: %s", file_id, e)
            return False
        except Exception:
            logger.exception("Unexpected error setting public permissions on %s", file_id)
            return False
        return True
