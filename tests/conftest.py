"""
Pytest configuration and shared fixtures for the video relay test suite.

Provides:
- Test settings with uploads staged under pytest's tmp_path
- A fixed capture clock
- A mocked DriveClient whose calls record their arguments
- Factories for staged IncomingUpload objects
- A FastAPI TestClient with Drive, clock, settings and rate limiting overridden
"""

import os
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO
from unittest.mock import AsyncMock, Mock

import pytest


os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JSON_LOGS", "false")

from fastapi.testclient import TestClient  # noqa: E402

from video_relay.api.dependencies import enforce_upload_rate_limit, get_clock, get_drive  # noqa: E402
from video_relay.config import Settings, get_settings  # noqa: E402
from video_relay.core.drive import DriveClient  # noqa: E402
from video_relay.main import app  # noqa: E402
from video_relay.models.upload import IncomingUpload, RemoteObjectReference  # noqa: E402


DRIVE_FILE_ID = "1AbCdEfGhIjKlMnOp"
DRIVE_LINK = f"https://drive.google.com/file/d/{DRIVE_FILE_ID}/view?usp=drivesdk"
FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: isolated unit tests with no external services")
    config.addinivalue_line("markers", "integration: HTTP-level tests through the FastAPI app")


# ==============================================================================
# Settings and Clock
# ==============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings for tests: no Redis, no real key, uploads staged in tmp_path."""
    return Settings(
        app_env="testing",
        app_name="VIDEO-RELAY-Test",
        debug=True,
        json_logs=False,
        google_key_base64=None,
        drive_folder_id="test-folder-id",
        drive_timeout_seconds=120,
        drive_num_retries=3,
        make_public=True,
        max_upload_size_mb=100,
        chunked_upload_threshold_mb=50,
        upload_temp_dir=str(tmp_path),
        rate_limit_enabled=False,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


# ==============================================================================
# Drive Mock
# ==============================================================================


async def _fake_create_file(name: str, mime_type: str, stream: BinaryIO) -> RemoteObjectReference:
    data = stream.read()
    return RemoteObjectReference(
        id=DRIVE_FILE_ID,
        name=name,
        mime_type=mime_type,
        size=len(data),
        web_view_link=DRIVE_LINK,
    )


async def _fake_update_mime_type(file_id: str, mime_type: str) -> RemoteObjectReference:
    return RemoteObjectReference(
        id=file_id,
        name="Alice_Smith_2024-01-02_03-04-05.webm",
        mime_type=mime_type,
        web_view_link=f"https://drive.google.com/file/d/{file_id}/view",
    )


@pytest.fixture
def mock_drive() -> Mock:
    """DriveClient double: create echoes its arguments, grant succeeds."""
    drive = Mock(spec=DriveClient)
    drive.create_file = AsyncMock(side_effect=_fake_create_file)
    drive.grant_public_read = AsyncMock(return_value=None)
    drive.update_mime_type = AsyncMock(side_effect=_fake_update_mime_type)
    return drive


# ==============================================================================
# Incoming Uploads
# ==============================================================================


@pytest.fixture
def incoming_factory(tmp_path: Path) -> Callable[..., IncomingUpload]:
    """Build IncomingUpload objects staged in their own directory under tmp_path."""
    counter = {"n": 0}

    def _make(
        filename: str = "video.mp4",
        content_type: str | None = "video/mp4",
        data: bytes = b"\x00\x00\x00\x20ftypisom" + b"\x00" * 1024,
    ) -> IncomingUpload:
        counter["n"] += 1
        staging_dir = tmp_path / f"staged_{counter['n']}"
        staging_dir.mkdir()
        path = staging_dir / "upload.bin"
        path.write_bytes(data)
        return IncomingUpload(
            filename=filename,
            content_type=content_type,
            size=len(data),
            path=path,
            owns_directory=True,
        )

    return _make


# ==============================================================================
# FastAPI Test Client
# ==============================================================================


@pytest.fixture
def client(
    test_settings: Settings,
    mock_drive: Mock,
    fixed_now: datetime,
) -> Generator[TestClient, None, None]:
    """
    TestClient with Drive, clock, settings and rate limiting overridden.

    The lifespan is not entered, so no credentials or Redis are needed.
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_drive] = lambda: mock_drive
    app.dependency_overrides[get_clock] = lambda: (lambda: fixed_now)
    app.dependency_overrides[enforce_upload_rate_limit] = lambda: None

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def video_bytes() -> Callable[[int], bytes]:
    def _make(size: int) -> bytes:
        header = b"\x00\x00\x00\x20ftypisom"
        return header + b"\x00" * max(size - len(header), 0)

    return _make


@pytest.fixture
def leftover_staging(tmp_path: Path) -> Callable[[], list[Path]]:
    """Staging directories the relay left behind in tmp_path."""

    def _list() -> list[Path]:
        return [p for p in tmp_path.iterdir() if p.name.startswith("video_relay_")]

    return _list
