"""
Retroactive content type repair for files already stored in Drive.

Older uploads may have been stored as ``application/octet-stream``. The fixer
resolves the correct type from a filename and pushes a metadata-only update.
"""

import logging

from video_relay.core.drive import DriveClient
from video_relay.models.upload import RemoteObjectReference
from video_relay.utils.mime import resolve_mime_type


logger = logging.getLogger(__name__)


class MimeTypeFixer:
    """Sets a Drive file's content type from a filename's extension."""

    def __init__(self, drive: DriveClient) -> None:
        self.drive = drive

    async def fix_content_type(self, file_id: str, file_name: str) -> RemoteObjectReference:
        """
        Update ``file_id`` to the content type resolved from ``file_name``.

        Raises:
            UnsupportedFormatError: Unknown extension. Drive is not called.
            RemoteNotFoundError: No file with that id.
            DownstreamError: Any other Drive failure.
        """
        mime_type = resolve_mime_type(file_name)
        logger.info("Fixing MIME type of %s to %s", file_id, mime_type)
        return await self.drive.update_mime_type(file_id, mime_type)
