"""
Service account credential bootstrap.

The Google service account key arrives base64-encoded in ``GOOGLE_KEY_BASE64``.
It is decoded once at startup into an in-memory credentials object and never
written to disk.
"""

import base64
import binascii
import json
import logging
from typing import Any

from google.oauth2 import service_account

from video_relay.config import Settings, get_settings
from video_relay.exceptions import CredentialsError


logger = logging.getLogger(__name__)


def decode_service_account_key(encoded_key: str | None) -> dict[str, Any]:
    """
    Decode a base64-encoded service account JSON key.

    Raises:
        CredentialsError: If the value is missing or is
            not a base64-encoded service account key.
    """
    if not encoded_key or not encoded_key.strip():
        raise CredentialsError("Missing GOOGLE_KEY_BASE64 environment variable")

    try:
        raw = base64.b64decode(encoded_key.strip(), validate=True)
        info = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CredentialsError(f"GOOGLE_KEY_BASE64 is not a base64-encoded JSON key: {e}") from e

    if not isinstance(info, dict) or info.get("type") != "service_account":
        raise CredentialsError("GOOGLE_KEY_BASE64 does not contain a service account key")

    return info


def load_credentials(settings: Settings | None = None) -> service_account.Credentials:
    """
    Build scoped service account credentials from settings.

    Returns:
        Credentials scoped to ``settings.drive_scopes``.

    Raises:
        CredentialsError: If the key is missing or malformed.
    """
    settings = settings or get_settings()
    info = decode_service_account_key(settings.google_key_base64)

    try:
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=settings.drive_scopes
        )
    except (ValueError, KeyError) as e:
        raise CredentialsError(f"Invalid service account key: {e}") from e

    logger.info("Loaded service account credentials for %s", info.get("client_email", "<unknown>"))
    return credentials
