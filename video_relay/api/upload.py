"""
Upload routes.

- POST /upload-video - multipart ``video`` plus ``personName``; when the name
  is omitted it is read from a pre-named upload's filename
- POST /upload-video/{personName} - person name taken from the URL
- POST /upload-video-chunked - same as /upload-video for files under the
  chunked threshold, 501 at or above it
"""

import logging
import time
from typing import Annotated
from urllib.parse import unquote

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Path, UploadFile, status

from video_relay.api.dependencies import enforce_upload_rate_limit, get_upload_pipeline
from video_relay.config import Settings, get_settings
from video_relay.exceptions import (
    MissingFileError,
    MissingPersonNameError,
    UnimplementedError,
    UnsupportedFormatError,
    downstream_summary,
)
from video_relay.models.upload import (
    ChunkedUploadResponse,
    ErrorResponse,
    UploadResult,
    UploadVideoResponse,
)
from video_relay.services.upload_service import UploadPipeline
from video_relay.utils.mime import allowed_extensions, get_extension, is_video_upload
from video_relay.utils.naming import parse_person_name
from video_relay.utils.staging import staged_upload


logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"], dependencies=[Depends(enforce_upload_rate_limit)])

UPLOAD_FAILED = "Failed to upload video"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing file, missing person name or not a video"},
    413: {"model": ErrorResponse, "description": "File too large"},
    429: {"model": ErrorResponse, "description": "Too many upload requests"},
    500: {"model": ErrorResponse, "description": "Google Drive failure"},
}

VideoFile = Annotated[UploadFile | None, File(description="Video file to upload")]
PersonNameField = Annotated[str | None, Form(alias="personName", description="Person shown in the video")]


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _require_file(video: UploadFile | None) -> UploadFile:
    if video is None:
        raise MissingFileError()
    return video


def _require_person_name(person_name: str | None) -> str:
    if not person_name or not person_name.strip():
        raise MissingPersonNameError()
    return person_name


async def _relay_upload(
    video: UploadFile,
    person_name: str | None,
    *,
    pipeline: UploadPipeline,
    settings: Settings,
    background_tasks: BackgroundTasks,
    preserve_filename: bool = False,
    resumable_threshold_bytes: int | None = None,
) -> UploadResult:
    """Stage ``video`` and run it through the pipeline."""
    filename = video.filename or ""
    if not is_video_upload(video.content_type, filename):
        logger.warning(
            "Rejected non-video upload '%s' (%s); accepted extensions: %s",
            filename,
            video.content_type,
            ", ".join(allowed_extensions()),
        )
        raise UnsupportedFormatError(get_extension(filename), filename)

    with downstream_summary(UPLOAD_FAILED):
        async with staged_upload(
            video,
            max_size_bytes=settings.max_upload_size_bytes,
            temp_dir=settings.upload_temp_dir,
        ) as incoming:
            if resumable_threshold_bytes is not None and incoming.size >= resumable_threshold_bytes:
                raise UnimplementedError(
                    f"Upload of {incoming.size} bytes needs a resumable upload",
                    error="Resumable upload not implemented yet",
                    suggestion=(
                        "Use the regular /upload-video endpoint for files under "
                        f"{resumable_threshold_bytes // (1024 * 1024)}MB"
                    ),
                )
            return await pipeline.upload(
                incoming,
                person_name,
                make_public=settings.make_public,
                preserve_filename=preserve_filename,
                defer=background_tasks.add_task,
            )


def _upload_response(result: UploadResult, started: float) -> UploadVideoResponse:
    reference = result.reference
    return UploadVideoResponse(
        file_id=reference.id,
        file_name=reference.name,
        drive_link=reference.web_view_link,
        mime_type=reference.mime_type,
        file_size=reference.size,
        person_name=result.person_name,
        upload_date=result.upload_date,
        upload_time_ms=_elapsed_ms(started),
    )


@router.post(
    "/upload-video",
    response_model=UploadVideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a video",
    responses=ERROR_RESPONSES,
)
async def upload_video(
    background_tasks: BackgroundTasks,
    video: VideoFile = None,
    person_name: PersonNameField = None,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    settings: Settings = Depends(get_settings),
) -> UploadVideoResponse:
    """
    Upload a video named after ``personName``.

    Without ``personName`` the filename must follow
    ``Prefix_<Name>_<YYYY-MM-DD>_<epoch>.<ext>``; the name is read from it and
    the file is stored under its original filename.
    """
    started = time.perf_counter()
    video = _require_file(video)

    preserve_filename = False
    if not person_name or not person_name.strip():
        parsed_name = parse_person_name(video.filename)
        if parsed_name is None:
            raise MissingPersonNameError()
        person_name, preserve_filename = parsed_name, True
        logger.info("Person name '%s' read from filename '%s'", parsed_name, video.filename)

    result = await _relay_upload(
        video,
        person_name,
        pipeline=pipeline,
        settings=settings,
        background_tasks=background_tasks,
        preserve_filename=preserve_filename,
    )
    response = _upload_response(result, started)
    logger.info("Upload request completed in %dms", response.upload_time_ms)
    return response


@router.post(
    "/upload-video/{personName}",
    response_model=UploadVideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a video with the person name in the URL",
    responses=ERROR_RESPONSES,
)
async def upload_video_for_person(
    background_tasks: BackgroundTasks,
    person_name: Annotated[str, Path(alias="personName")],
    video: VideoFile = None,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    settings: Settings = Depends(get_settings),
) -> UploadVideoResponse:
    started = time.perf_counter()
    video = _require_file(video)
    person_name = _require_person_name(unquote(person_name))

    result = await _relay_upload(
        video,
        person_name,
        pipeline=pipeline,
        settings=settings,
        background_tasks=background_tasks,
    )
    return _upload_response(result, started)


@router.post(
    "/upload-video-chunked",
    response_model=ChunkedUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a video, rejecting files that need a resumable upload",
    responses={**ERROR_RESPONSES, 501: {"model": ErrorResponse, "description": "File too large for this route"}},
)
async def upload_video_chunked(
    background_tasks: BackgroundTasks,
    video: VideoFile = None,
    person_name: PersonNameField = None,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    settings: Settings = Depends(get_settings),
) -> ChunkedUploadResponse:
    started = time.perf_counter()
    video = _require_file(video)
    person_name = _require_person_name(person_name)

    result = await _relay_upload(
        video,
        person_name,
        pipeline=pipeline,
        settings=settings,
        background_tasks=background_tasks,
        resumable_threshold_bytes=settings.chunked_upload_threshold_bytes,
    )
    reference = result.reference
    return ChunkedUploadResponse(
        file_id=reference.id,
        file_name=reference.name,
        drive_link=reference.web_view_link,
        upload_time_ms=_elapsed_ms(started),
    )
