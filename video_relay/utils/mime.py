"""
MIME type resolution for video uploads.

Maps a filename's extension to the canonical video content type. Only the
extensions in ``VIDEO_MIME_TYPES`` are accepted; any other extension raises
``UnsupportedFormatError``.

Example:
    >>> resolve_mime_type("clip.MP4")
    'video/mp4'
    >>> resolve_content_type("application/octet-stream", "clip.mkv")
    'video/x-matroska'
"""

from pathlib import PurePath

from video_relay.exceptions import UnsupportedFormatError


# Canonical content type per lower-cased extension
VIDEO_MIME_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".m4v": "video/x-m4v",
}

VIDEO_CONTENT_TYPE_PREFIX = "video/"


def get_extension(filename: str) -> str:
    """
    Return the extension of ``filename`` exactly as written, leading dot included.

    Directory components are ignored and dotfiles such as ``.mp4`` have no
    extension. Returns an empty string when there is none.
    """
    if not filename:
        return ""
    # Treat backslashes as separators so Windows-style client paths behave
    return PurePath(filename.replace("\\", "/")).suffix


def resolve_mime_type(filename: str) -> str:
    """
    Resolve the canonical content type for ``filename`` from its extension.

    Args:
        filename: Any filename; matching is case-insensitive.

    Returns:
        The mapped ``video/*`` content type.

    Raises:
        UnsupportedFormatError: If the extension is not in ``VIDEO_MIME_TYPES``.
    """
    extension = get_extension(filename).lower()
    try:
        return VIDEO_MIME_TYPES[extension]
    except KeyError:
        raise UnsupportedFormatError(extension, filename) from None


def is_video_content_type(content_type: str | None) -> bool:
    """Check whether a declared content type already names a video."""
    return bool(content_type) and content_type.lower().startswith(VIDEO_CONTENT_TYPE_PREFIX)


def is_supported_video(filename: str) -> bool:
    """Check whether ``filename`` carries one of the known video extensions."""
    return get_extension(filename).lower() in VIDEO_MIME_TYPES


def resolve_content_type(declared: str | None, filename: str) -> str:
    """
    Pick the content type to store an upload under.

    A declared ``video/*`` type is kept verbatim. Any other declared type,
    ``application/octet-stream`` included, is replaced by
    the type resolved from the filename's extension.

    Raises:
        UnsupportedFormatError: If the declared type is not a video and the
            extension is unknown.
    """
    if is_video_content_type(declared):
        return declared
    return resolve_mime_type(filename)


def is_video_upload(content_type: str | None, filename: str) -> bool:
    """Check whether an upload is acceptable by declared type or by extension."""
    return is_video_content_type(content_type) or is_supported_video(filename)


def allowed_extensions() -> list[str]:
    """Sorted list of accepted video extensions."""
    return sorted(VIDEO_MIME_TYPES)
