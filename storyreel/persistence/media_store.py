"""
Media Store - generated artifacts on the local filesystem.

Layout:
    {root}/{story_id}/segment-{segment_id}/{kind}.{ext}
    {root}/{story_id}/reference/image.png

Locators are POSIX paths relative to the root.
"""
import asyncio
import logging
import mimetypes
import re
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Optional, Union

import aiofiles

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".webp": "image/webp",
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
}

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


class InvalidLocator(ValueError):
    """Locator is malformed or points outside the media root."""


class RangeNotSatisfiable(ValueError):
    """Requested byte range cannot be served for this resource."""

    def __init__(self, header: str, size: int):
        self.header = header
        self.size = size
        super().__init__(f"Range '{header}' not satisfiable for {size} bytes")


@dataclass
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def parse_range(header: Optional[str], size: int) -> Optional[ByteRange]:
    """
    Parse a single-range HTTP Range header.

    Supports 'bytes=a-b', 'bytes=a-' and 'bytes=-n'. Returns None when no
    range was requested; raises RangeNotSatisfiable when it cannot be served.
    """
    if not header:
        return None

    match = _RANGE_RE.match(header.strip().replace(" ", ""))
    if not match:
        raise RangeNotSatisfiable(header, size)

    first, last = match.groups()
    if not first and not last:
        raise RangeNotSatisfiable(header, size)

    if not first:
        suffix = int(last)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiable(header, size)
        return ByteRange(start=max(0, size - suffix), end=size - 1)

    start = int(first)
    end = int(last) if last else size - 1
    if start >= size or end < start:
        raise RangeNotSatisfiable(header, size)
    return ByteRange(start=start, end=min(end, size - 1))


@dataclass
class MediaStream:
    """Partial or full read of a stored artifact."""
    path: Path
    start: int
    end: int  # inclusive
    size: int
    content_type: str

    @property
    def length(self) -> int:
        return self.end - self.start + 1 if self.size else 0

    async def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        remaining = self.length
        async with aiofiles.open(self.path, "rb") as f:
            await f.seek(self.start)
            while remaining > 0:
                chunk = await f.read(min(chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk

    async def read(self) -> bytes:
        parts = [chunk async for chunk in self.iter_chunks()]
        return b"".join(parts)


class MediaStore:
    """Filesystem media store keyed by (story, segment, kind)."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Locators
    # ------------------------------------------------------------------

    @staticmethod
    def segment_locator(story_id: str, segment_id: int, kind: str, extension: str) -> str:
        return f"{story_id}/segment-{segment_id}/{kind}.{extension}"

    @staticmethod
    def reference_locator(story_id: str, extension: str = "png") -> str:
        return f"{story_id}/reference/image.{extension}"

    def resolve(self, locator: str) -> Path:
        """Absolute path for a locator; rejects anything escaping the root."""
        if not locator:
            raise InvalidLocator("Empty locator")

        posix = PurePosixPath(locator)
        if posix.is_absolute() or ".." in posix.parts or "\\" in locator:
            raise InvalidLocator(f"Invalid locator: {locator}")

        path = (self.root / Path(*posix.parts)).resolve()
        if path != self.root and self.root not in path.parents:
            raise InvalidLocator(f"Locator escapes media root: {locator}")
        return path

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write(self, story_id: str, segment_id: int, kind: str, data: bytes, extension: str) -> str:
        locator = self.segment_locator(story_id, segment_id, kind, extension)
        await self._write(locator, data)
        return locator

    async def write_reference(self, story_id: str, data: bytes, extension: str = "png") -> str:
        locator = self.reference_locator(story_id, extension)
        await self._write(locator, data)
        return locator

    async def _write(self, locator: str, data: bytes) -> None:
        path = self.resolve(locator)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a temp file and rename so readers never see partial content
        tmp_path = path.with_name(path.name + ".part")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
        tmp_path.replace(path)

        logger.debug(f"[MEDIA] Stored {locator} ({len(data)} bytes)")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def exists(self, locator: str) -> bool:
        try:
            return self.resolve(locator).is_file()
        except InvalidLocator:
            return False

    def size(self, locator: str) -> int:
        return self.resolve(locator).stat().st_size

    def content_type(self, locator: str) -> str:
        suffix = PurePosixPath(locator).suffix.lower()
        return CONTENT_TYPES.get(suffix) or mimetypes.guess_type(locator)[0] or "application/octet-stream"

    def open(self, locator: str, start: Optional[int] = None, end: Optional[int] = None) -> MediaStream:
        """
        Open a stored artifact for reading.

        Args:
            locator: Artifact locator
            start: First byte (default 0)
            end: Last byte, inclusive (default last byte of the file)

        Raises:
            FileNotFoundError: Nothing stored at the locator
            InvalidLocator: Locator escapes the root
        """
        path = self.resolve(locator)
        if not path.is_file():
            raise FileNotFoundError(locator)

        size = path.stat().st_size
        start = 0 if start is None else start
        end = size - 1 if end is None else min(end, size - 1)

        return MediaStream(
            path=path,
            start=start,
            end=end,
            size=size,
            content_type=self.content_type(locator),
        )

    async def read(self, locator: str) -> bytes:
        async with aiofiles.open(self.resolve(locator), "rb") as f:
            return await f.read()

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def delete(self, story_id: str) -> bool:
        """Remove every artifact of a story."""
        story_dir = self.resolve(story_id)
        if story_dir == self.root:
            raise InvalidLocator(f"Invalid story id: {story_id!r}")
        if not story_dir.exists():
            return False
        await asyncio.to_thread(shutil.rmtree, story_dir)
        logger.info(f"[MEDIA] Deleted media for story {story_id}")
        return True


# Global media store instance
_media_store: Optional[MediaStore] = None


def get_media_store() -> MediaStore:
    """Get or create the media store singleton."""
    global _media_store
    if _media_store is None:
        from ..config import config
        _media_store = MediaStore(config.paths.media_dir)
    return _media_store
