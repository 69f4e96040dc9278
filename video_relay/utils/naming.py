"""
Canonical filename formatting for uploaded videos.

Stored names follow ``{Person}_{YYYY-MM-DD}_{HH-MM-SS}{ext}``. The timestamp
has one-second granularity, so two uploads for the same person within the
same second produce the same name. Drive allows duplicate names in a folder,
so both files are kept.
"""

import re
from datetime import datetime

from video_relay.exceptions import MissingPersonNameError
from video_relay.utils.mime import get_extension


_DISALLOWED_CHARS = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE_RUN = re.compile(r"\s+")

# Client-side pre-named uploads: Prefix_<Name>_<YYYY-MM-DD>_<epoch>.<ext>
_PRENAMED_UPLOAD = re.compile(
    r"^[A-Za-z0-9]+_(?P<name>.+?)_(?P<date>\d{4}-\d{2}-\d{2})_(?P<epoch>\d+)\.(?P<ext>[A-Za-z0-9]+)$"
)


def sanitize_person_name(person_name: str) -> str:
    """
    Reduce a free-text person name to letters, digits and underscores.

    The name is trimmed, characters outside ``[A-Za-z0-9\\s]`` are removed,
    then whitespace runs collapse to a single underscore. Whitespace left
    behind by removed characters is kept, so ``"Alice !"`` becomes ``"Alice_"``.

    Example:
        >>> sanitize_person_name("  Jane D.O.E! ")
        'Jane_DOE'
    """
    cleaned = _DISALLOWED_CHARS.sub("", (person_name or "").strip())
    return _WHITESPACE_RUN.sub("_", cleaned)


def format_filename(person_name: str, original_filename: str, now: datetime) -> str:
    """
    Build the stored filename for an upload.

    Args:
        person_name: Free-text name supplied by the client.
        original_filename: Filename as uploaded; only its extension is kept,
            verbatim and with the leading dot.
        now: Capture timestamp.

    Returns:
        ``{sanitized}_{date}_{time}{ext}``

    Raises:
        MissingPersonNameError: If the name is blank or has
            no allowed characters left after sanitization.
    """
    if not person_name or not person_name.strip():
        raise MissingPersonNameError()

    sanitized = sanitize_person_name(person_name)
    if not sanitized:
        raise MissingPersonNameError(f"Person name '{person_name}' has no usable characters")

    extension = get_extension(original_filename)
    return f"{sanitized}_{now:%Y-%m-%d}_{now:%H-%M-%S}{extension}"


def parse_person_name(filename: str | None) -> str | None:
    """
    Extract the person name from a pre-named upload.

    Recognises ``Prefix_<Name>_<YYYY-MM-DD>_<epoch>.<ext>``. Underscores
    inside ``<Name>`` are read back as spaces.

    Returns:
        The person name, or None when the filename does not match.
    """
    if not filename:
        return None

    match = _PRENAMED_UPLOAD.match(filename)
    if match is None:
        return None

    name = match.group("name").replace("_", " ").strip()
    return name or None
