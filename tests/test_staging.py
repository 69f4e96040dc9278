"""
Tests for upload staging and IncomingUpload release.
"""

from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import pytest
from fastapi import UploadFile, status
from starlette.datastructures import Headers

from video_relay.exceptions import FileTooLargeError
from video_relay.models.upload import IncomingUpload
from video_relay.utils.staging import stage_upload, staged_upload


def make_upload_file(data: bytes, filename: str = "clip.mp4", content_type: str = "video/mp4") -> UploadFile:
    return UploadFile(
        file=BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


# =============================================================================
# IncomingUpload
# =============================================================================


@pytest.mark.unit
class TestIncomingUpload:
    def test_release_deletes_file_and_directory(self, incoming_factory: Callable[..., IncomingUpload]) -> None:
        incoming = incoming_factory()
        staging_dir = incoming.path.parent

        assert incoming.release() is True
        assert not incoming.path.exists()
        assert not staging_dir.exists()
        assert incoming.released

    def test_second_release_is_a_no_op(self, incoming_factory: Callable[..., IncomingUpload]) -> None:
        incoming = incoming_factory()

        assert incoming.release() is True
        assert incoming.release() is False

    def test_release_tolerates_missing_file(self, incoming_factory: Callable[..., IncomingUpload]) -> None:
        incoming = incoming_factory()
        incoming.path.unlink()

        assert incoming.release() is True
        assert not incoming.path.parent.exists()

    def test_release_keeps_shared_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "shared.bin"
        path.write_bytes(b"data")
        neighbour = tmp_path / "other.bin"
        neighbour.write_bytes(b"other")
        incoming = IncomingUpload(filename="a.mp4", content_type="video/mp4", size=4, path=path)

        incoming.release()

        assert not path.exists()
        assert neighbour.exists()

    def test_in_memory_upload(self) -> None:
        incoming = IncomingUpload(filename="a.mp4", content_type="video/mp4", size=3, data=b"abc")

        with incoming.open() as stream:
            assert stream.read() == b"abc"

        assert incoming.release() is True
        assert incoming.data is None

    def test_open_after_release_fails(self, incoming_factory: Callable[..., IncomingUpload]) -> None:
        incoming = incoming_factory()
        incoming.release()

        with pytest.raises(ValueError):
            incoming.open()

    def test_is_empty(self) -> None:
        assert IncomingUpload(filename="a.mp4", content_type=None, size=0, data=b"").is_empty


# =============================================================================
# stage_upload / staged_upload
# =============================================================================


@pytest.mark.unit
class TestStageUpload:
    @pytest.mark.asyncio
    async def test_stages_bytes_in_private_directory(self, tmp_path: Path) -> None:
        data = b"\x00" * 4096
        incoming = await stage_upload(make_upload_file(data), max_size_bytes=1024 * 1024, temp_dir=str(tmp_path))

        try:
            assert incoming.size == len(data)
            assert incoming.filename == "clip.mp4"
            assert incoming.content_type == "video/mp4"
            assert incoming.path.read_bytes() == data
            assert incoming.path.parent.parent == tmp_path
            assert incoming.owns_directory
        finally:
            incoming.release()

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_concurrent_uploads_get_distinct_paths(self, tmp_path: Path) -> None:
        first = await stage_upload(make_upload_file(b"one"), max_size_bytes=1024, temp_dir=str(tmp_path))
        second = await stage_upload(make_upload_file(b"two"), max_size_bytes=1024, temp_dir=str(tmp_path))

        assert first.path != second.path
        first.release()
        assert second.path.read_bytes() == b"two"
        second.release()

    @pytest.mark.asyncio
    async def test_oversized_upload_is_rejected_and_removed(self, tmp_path: Path) -> None:
        with pytest.raises(FileTooLargeError):
            await stage_upload(make_upload_file(b"\x00" * 2048), max_size_bytes=1024, temp_dir=str(tmp_path))

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_oversized_upload_maps_to_content_too_large(self, tmp_path: Path) -> None:
        with pytest.raises(FileTooLargeError) as exc_info:
            await stage_upload(make_upload_file(b"\x00" * 2048), max_size_bytes=1024, temp_dir=str(tmp_path))

        assert exc_info.value.status_code == status.HTTP_413_CONTENT_TOO_LARGE == 413
        assert exc_info.value.error == "File too large"

    @pytest.mark.asyncio
    async def test_upload_at_exact_limit_is_accepted(self, tmp_path: Path) -> None:
        incoming = await stage_upload(make_upload_file(b"\x00" * 1024), max_size_bytes=1024, temp_dir=str(tmp_path))
        assert incoming.size == 1024
        incoming.release()

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            async with staged_upload(make_upload_file(b"data"), max_size_bytes=1024, temp_dir=str(tmp_path)) as incoming:
                assert incoming.path.exists()
                raise RuntimeError("boom")

        assert incoming.released
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_context_manager_after_early_release(self, tmp_path: Path) -> None:
        async with staged_upload(make_upload_file(b"data"), max_size_bytes=1024, temp_dir=str(tmp_path)) as incoming:
            assert incoming.release() is True

        assert list(tmp_path.iterdir()) == []
