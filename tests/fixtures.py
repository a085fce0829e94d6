"""Test fixtures for integration tests.

Helpers that write media files to disk with controlled content, mtime
and EXIF dates, plus a snapshot helper for asserting on whole trees.
"""
from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image


def write_file(path: Path, content: bytes, mtime: Optional[datetime] = None) -> Path:
    """Write ``content`` to ``path``, optionally pinning its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        ts = mtime.timestamp()
        os.utime(path, (ts, ts))
    return path


def write_exif_jpeg(path: Path, taken: datetime, color: str = "red") -> Path:
    """Write a small JPEG whose IFD0 DateTime is ``taken``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", (16, 16), color=color)
    exif = Image.Exif()
    exif[306] = taken.strftime("%Y:%m:%d %H:%M:%S")
    img.save(path, exif=exif)
    return path


def sha256(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def tree_snapshot(root: Path) -> dict[str, str]:
    """Relative path -> content hash for every visible file below ``root``."""
    return {
        str(p.relative_to(root)): sha256(p)
        for p in sorted(root.rglob("*"))
        if p.is_file() and not p.name.startswith(".")
    }


def content_multiset(*roots: Path) -> list[str]:
    """Sorted content hashes of every visible file under all roots."""
    hashes: list[str] = []
    for root in roots:
        hashes.extend(tree_snapshot(root).values())
    return sorted(hashes)


@dataclass
class NamedMedia:
    """A source file whose destination month is known in advance."""
    name: str
    content: bytes
    expected_dir: str
    mtime: Optional[datetime] = None

    def create(self, source_root: Path) -> Path:
        return write_file(source_root / self.name, self.content, self.mtime)


SAMPLE_LIBRARY = [
    NamedMedia("vacation_2024-03-15_sunset.jpg", b"sunset", "2024/03"),
    NamedMedia("IMG_20240315_120000.jpg", b"img-0315", "2024/03"),
    NamedMedia("clip_2023_07_04.mp4", b"fireworks", "2023/07"),
    NamedMedia("party/05-06-2022.png", b"party", "2022/06"),
    NamedMedia("song.mp3", b"melody", "2021/11", mtime=datetime(2021, 11, 2, 9, 0)),
]
