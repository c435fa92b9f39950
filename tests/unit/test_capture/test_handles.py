"""Tests for temp-file display handles."""

from __future__ import annotations

from pathlib import Path

from wheelaway.capture.handles import TempFileHandle, temp_file_handle_factory


class TestTempFileHandle:
    def test_writes_image_to_disk(self, tmp_path: Path, png_bytes: bytes) -> None:
        handle = TempFileHandle(png_bytes, "image/png", directory=tmp_path)
        assert handle.path.parent == tmp_path
        assert handle.path.suffix == ".png"
        assert handle.path.read_bytes() == png_bytes

    def test_jpeg_suffix(self, tmp_path: Path) -> None:
        handle = TempFileHandle(b"\xff\xd8", "image/jpeg", directory=tmp_path)
        assert handle.path.suffix == ".jpg"

    def test_release_removes_file_once(self, tmp_path: Path, png_bytes: bytes) -> None:
        handle = TempFileHandle(png_bytes, "image/png", directory=tmp_path)
        handle.release()
        handle.release()
        assert handle.released
        assert not handle.path.exists()

    def test_factory(self, tmp_path: Path, png_bytes: bytes) -> None:
        factory = temp_file_handle_factory(tmp_path)
        handle = factory(png_bytes, "image/png")
        assert handle.path.exists()
        handle.release()
