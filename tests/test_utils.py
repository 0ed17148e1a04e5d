import time
from unittest.mock import patch

from cbutils.utils import compute_image_hash, ensure_dirs, format_size, now_ms, truncate_text


class TestComputeImageHash:
    def test_deterministic(self):
        assert compute_image_hash(b"\x00" * 16, 2, 2) == compute_image_hash(b"\x00" * 16, 2, 2)

    def test_sha256_hex(self):
        h = compute_image_hash(b"\x01\x02\x03\x04", 1, 1)
        assert len(h) == 64
        int(h, 16)

    def test_dimensions_are_part_of_identity(self):
        pixels = b"\xff" * 32
        assert compute_image_hash(pixels, 2, 4) != compute_image_hash(pixels, 4, 2)


class TestNowMs:
    def test_milliseconds(self):
        before = int(time.time() * 1000)
        value = now_ms()
        after = int(time.time() * 1000)
        assert before - 1 <= value <= after + 1


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("hello", 60) == "hello"

    def test_long_text_truncated(self):
        result = truncate_text("a" * 100, 20)
        assert len(result) == 20
        assert result.endswith("...")

    def test_whitespace_collapsed(self):
        assert truncate_text("hello\n\n  world\ttab", 60) == "hello world tab"

    def test_empty(self):
        assert truncate_text("", 60) == ""


class TestFormatSize:
    def test_bytes(self):
        assert format_size(512) == "512 B"

    def test_kilobytes(self):
        assert format_size(2048) == "2.0 KB"

    def test_megabytes(self):
        assert format_size(5 * 1024 * 1024) == "5.0 MB"

    def test_gigabytes(self):
        assert format_size(3 * 1024**3) == "3.0 GB"


class TestEnsureDirs:
    def test_creates_data_and_image_dirs(self, tmp_path):
        data = tmp_path / "data"
        with patch("cbutils.utils.DATA_DIR", data), patch("cbutils.utils.IMAGE_DIR", data / "images"):
            ensure_dirs()
            ensure_dirs()
        assert (data / "images").is_dir()
