"""Tests for metadata date extraction."""
import subprocess
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from mediamover.engines.metadata import MetadataDateExtractor, parse_exif_datetime

from .fixtures import write_exif_jpeg


class TestParseExifDatetime:
    """Tests for EXIF datetime string parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("2021:06:15 10:30:45", datetime(2021, 6, 15, 10, 30, 45)),
        ("2021-06-15 10:30:45", datetime(2021, 6, 15, 10, 30, 45)),
        ("2021:06:15 10:30:45.123+02:00", datetime(2021, 6, 15, 10, 30, 45)),
        ("2021:06:15", datetime(2021, 6, 15)),
    ])
    def test_formats(self, value, expected):
        assert parse_exif_datetime(value) == expected

    def test_garbage(self):
        assert parse_exif_datetime("0000:00:00 00:00:00") is None
        assert parse_exif_datetime("") is None


class TestMetadataDateExtractor:
    """Tests for MetadataDateExtractor."""

    @pytest.fixture
    def extractor(self):
        """Extractor that never shells out."""
        return MetadataDateExtractor(use_exiftool=False)

    def test_exif_date_from_jpeg(self, extractor, tmp_path):
        """Test the EXIF DateTime of a JPEG is read with Pillow."""
        path = write_exif_jpeg(tmp_path / "photo.jpg", datetime(2019, 7, 4, 12, 0, 0))
        assert extractor.extract_date(path) == datetime(2019, 7, 4, 12, 0, 0)

    def test_image_without_exif(self, extractor, tmp_path):
        """Test an image without EXIF yields None."""
        path = tmp_path / "plain.png"
        Image.new("RGB", (8, 8)).save(path)
        assert extractor.extract_date(path) is None

    def test_corrupt_image(self, extractor, tmp_path):
        """Test a file that is not an image yields None."""
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not a jpeg")
        assert extractor.extract_date(path) is None

    def test_video_without_exiftool(self, extractor, tmp_path):
        """Test non-images need exiftool."""
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00" * 32)
        assert extractor.extract_date(path) is None
        assert extractor.has_exiftool is False

    def test_exiftool_output_parsed(self, tmp_path):
        """Test the first date printed by exiftool is used."""
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00" * 32)
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="2018:12:24 18:00:00\n2019:01:01 00:00:00\n", stderr=""
        )
        with patch("mediamover.engines.metadata.shutil.which", return_value="/usr/bin/exiftool"), \
             patch("mediamover.engines.metadata.subprocess.run", return_value=completed) as run:
            extractor = MetadataDateExtractor()
            assert extractor.extract_date(path) == datetime(2018, 12, 24, 18, 0, 0)

        args = run.call_args[0][0]
        assert args[0] == "/usr/bin/exiftool"
        assert "-DateTimeOriginal" in args
        assert args[-1] == str(path)

    def test_exiftool_failure(self, tmp_path):
        """Test exiftool errors degrade to None."""
        path = tmp_path / "clip.mov"
        path.write_bytes(b"\x00")
        with patch("mediamover.engines.metadata.shutil.which", return_value="/usr/bin/exiftool"), \
             patch(
                 "mediamover.engines.metadata.subprocess.run",
                 side_effect=subprocess.TimeoutExpired(cmd="exiftool", timeout=1),
             ):
            assert MetadataDateExtractor().extract_date(path) is None

    def test_exiftool_missing(self, tmp_path):
        """Test a missing exiftool binary is not an error."""
        with patch("mediamover.engines.metadata.shutil.which", return_value=None):
            extractor = MetadataDateExtractor()
        assert extractor.has_exiftool is False
        path = tmp_path / "song.mp3"
        path.write_bytes(b"ID3")
        assert extractor.extract_date(path) is None
