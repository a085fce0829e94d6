"""Capture-date extraction from embedded metadata.

Images are read with Pillow's EXIF support. Anything Pillow cannot answer
(videos, audio, HEIC without a plugin) goes to the exiftool binary. A
missing exiftool is not an error: the caller falls back to mtime.
"""
from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif", ".webp",
})

EXIF_IFD = 0x8769
TAG_DATETIME_ORIGINAL = 36867
TAG_DATETIME_DIGITIZED = 36868
TAG_DATETIME = 306

EXIFTOOL_DATE_TAGS = ("-DateTimeOriginal", "-CreateDate", "-MediaCreateDate")

DATETIME_FORMATS = (
    "%Y:%m:%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y:%m:%d",
)


def parse_exif_datetime(value: str) -> Optional[datetime]:
    """Parse an EXIF-style datetime string."""
    value = value.strip().rstrip("\x00")
    # Drop sub-second and timezone suffixes: "2021:06:15 10:30:45.123+02:00"
    value = value[:19]
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


class MetadataDateExtractor:
    """Date-from-metadata source used when the filename carries no date."""

    def __init__(self, use_exiftool: bool = True, timeout: float = 10.0):
        """Initialize the extractor.

        Args:
            use_exiftool: Consult the exiftool binary for non-image files.
            timeout: Seconds to wait for a single exiftool call.
        """
        self._timeout = timeout
        self._exiftool = shutil.which("exiftool") if use_exiftool else None
        if use_exiftool and self._exiftool is None:
            logger.debug("exiftool not found; metadata dates limited to EXIF via Pillow")

    @property
    def has_exiftool(self) -> bool:
        return self._exiftool is not None

    def extract_date(self, path: Path) -> Optional[datetime]:
        """Extract the capture date.

        Priority:
        1. EXIF DateTimeOriginal / DateTimeDigitized / DateTime (images)
        2. exiftool DateTimeOriginal / CreateDate / MediaCreateDate
        """
        if path.suffix.lower() in IMAGE_EXTENSIONS:
            dt = self._extract_from_exif(path)
            if dt:
                return dt

        if self._exiftool:
            return self._extract_with_exiftool(path)
        return None

    def _extract_from_exif(self, path: Path) -> Optional[datetime]:
        """Extract datetime from EXIF data."""
        try:
            with Image.open(path) as img:
                exif = img.getexif()
                if not exif:
                    return None
                sub_ifd = exif.get_ifd(EXIF_IFD)
                for tag_id in (TAG_DATETIME_ORIGINAL, TAG_DATETIME_DIGITIZED):
                    if tag_id in sub_ifd:
                        dt = parse_exif_datetime(str(sub_ifd[tag_id]))
                        if dt:
                            return dt
                if TAG_DATETIME in exif:
                    return parse_exif_datetime(str(exif[TAG_DATETIME]))
                return None
        except (OSError, ValueError) as e:
            logger.debug("EXIF read failed for %s: %s", path, e)
            return None

    def _extract_with_exiftool(self, path: Path) -> Optional[datetime]:
        """Ask exiftool for the first available date tag."""
        assert self._exiftool is not None
        try:
            result = subprocess.run(
                [self._exiftool, *EXIFTOOL_DATE_TAGS, "-s", "-s", "-s", str(path)],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("exiftool failed for %s: %s", path, e)
            return None

        if result.returncode != 0:
            return None
        for line in result.stdout.splitlines():
            dt = parse_exif_datetime(line)
            if dt:
                return dt
        return None

    def close(self) -> None:
        """Nothing persistent to release; exiftool runs per call."""

    def __enter__(self) -> "MetadataDateExtractor":
        return self

    def __exit__(self, *args) -> None:
        self.close()
