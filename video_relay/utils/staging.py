"""
Staging of multipart uploads on local disk.

Each upload is streamed with aiofiles into its own ``tempfile.mkdtemp``
directory, so concurrent requests never share a path and releasing one
upload can never touch another's file.
"""

import logging
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiofiles
from fastapi import UploadFile

from video_relay.exceptions import FileTooLargeError
from video_relay.models.upload import IncomingUpload


logger = logging.getLogger(__name__)

STAGING_PREFIX = "video_relay_"
STAGED_FILENAME = "upload.bin"
CHUNK_SIZE = 1024 * 1024


async def stage_upload(
    upload: UploadFile,
    *,
    max_size_bytes: int,
    temp_dir: str | None = None,
) -> IncomingUpload:
    """
    Stream an UploadFile into a private staging directory.

    Args:
        upload: The multipart file part.
        max_size_bytes: Largest accepted upload.
        temp_dir: Parent for the staging directory (system temp dir when None).

    Returns:
        An IncomingUpload owning the staged file.

    Raises:
        FileTooLargeError: If the stream exceeds ``max_size_bytes``. Nothing is
            left on disk in that case.
    """
    staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=temp_dir))
    incoming = IncomingUpload(
        filename=upload.filename or "",
        content_type=upload.content_type,
        size=0,
        path=staging_dir / STAGED_FILENAME,
        owns_directory=True,
    )

    size = 0
    try:
        async with aiofiles.open(incoming.path, "wb") as staged_file:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > max_size_bytes:
                    raise FileTooLargeError(
                        f"Upload '{incoming.filename}' exceeds the "
                        f"{max_size_bytes // (1024 * 1024)}MB limit"
                    )
                await staged_file.write(chunk)
    except Exception:
        incoming.release()
        raise

    incoming.size = size
    logger.debug("Staged '%s' (%d bytes) at %s", incoming.filename, size, incoming.path)
    return incoming


@asynccontextmanager
async def staged_upload(
    upload: UploadFile,
    *,
    max_size_bytes: int,
    temp_dir: str | None = None,
) -> AsyncIterator[IncomingUpload]:
    """
    Stage an upload for the duration of a ``async with`` block.

    The upload is released on exit whatever happens inside the block. When
    the pipeline has already released it, the exit is a no-op.
    """
    incoming = await stage_upload(upload, max_size_bytes=max_size_bytes, temp_dir=temp_dir)
    try:
        yield incoming
    finally:
        incoming.release()
