"""
Maintenance routes for files already stored in Drive.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path

from video_relay.api.dependencies import get_mime_fixer
from video_relay.exceptions import MissingFieldError, downstream_summary
from video_relay.models.upload import ErrorResponse, FixMimeRequest, FixMimeResponse
from video_relay.services.mime_fixer import MimeTypeFixer


logger = logging.getLogger(__name__)

router = APIRouter(tags=["maintenance"])

FILE_NAME_REQUIRED = "fileName is required in request body"


@router.patch(
    "/fix-video-mime/{fileId}",
    response_model=FixMimeResponse,
    summary="Correct the stored content type of a Drive file",
    responses={
        400: {"model": ErrorResponse, "description": "Missing fileName or unknown extension"},
        500: {"model": ErrorResponse, "description": "Google Drive failure or unknown file id"},
    },
)
async def fix_video_mime(
    file_id: Annotated[str, Path(alias="fileId")],
    body: Annotated[FixMimeRequest | None, Body()] = None,
    fixer: MimeTypeFixer = Depends(get_mime_fixer),
) -> FixMimeResponse:
    """Resolve the content type from ``fileName`` and write it to the Drive file."""
    file_name = body.file_name if body is not None else None
    if not file_name:
        raise MissingFieldError(FILE_NAME_REQUIRED, error=FILE_NAME_REQUIRED)

    with downstream_summary("Failed to update MIME type"):
        reference = await fixer.fix_content_type(file_id, file_name)

    return FixMimeResponse(
        file_id=reference.id,
        file_name=reference.name or file_name,
        mime_type=reference.mime_type or "",
        drive_link=reference.web_view_link,
    )
