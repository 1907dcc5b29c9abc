"""
Media streaming endpoints with HTTP Range support.
"""
import logging
import re
from pathlib import PurePosixPath
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import StreamingResponse

from ...persistence.media_store import (
    MediaStore,
    RangeNotSatisfiable,
    parse_range,
)
from ...persistence.stories_repo import StoriesRepository
from ...pipeline.enums import MediaKind
from ..dependencies import get_repository, get_store
from ..exceptions import NotFoundError, RangeNotSatisfiableError, StoryNotFound, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/media", tags=["Media"])


def _stream(
    store: MediaStore,
    locator: str,
    range_header: Optional[str],
    extra_headers: Optional[Dict[str, str]] = None,
) -> StreamingResponse:
    """Serve a stored artifact, honoring a single byte range."""
    if not store.exists(locator):
        raise NotFoundError("Media", locator)

    size = store.size(locator)
    try:
        byte_range = parse_range(range_header, size)
    except RangeNotSatisfiable:
        logger.info(f"[MEDIA] Unsatisfiable range '{range_header}' for {locator} ({size} bytes)")
        raise RangeNotSatisfiableError(size)

    headers = {"Accept-Ranges": "bytes", **(extra_headers or {})}
    if byte_range is None:
        stream = store.open(locator)
        status_code = status.HTTP_200_OK
    else:
        stream = store.open(locator, byte_range.start, byte_range.end)
        status_code = status.HTTP_206_PARTIAL_CONTENT
        headers["Content-Range"] = f"bytes {stream.start}-{stream.end}/{stream.size}"
    headers["Content-Length"] = str(stream.length)

    return StreamingResponse(
        stream.iter_chunks(),
        status_code=status_code,
        media_type=stream.content_type,
        headers=headers,
    )


def download_filename(title: str, segment_id: int, extension: str) -> str:
    """ASCII-safe attachment name, e.g. 'The-Lighthouse-segment-2.mp4'."""
    stem = re.sub(r"[^A-Za-z0-9_-]+", "-", title or "").strip("-") or "story"
    return f"{stem}-segment-{segment_id}.{extension}"


@router.get("/{story_id}/segments/{segment_id}/download", summary="Download a segment video")
async def download_segment_video(
    story_id: str,
    segment_id: int,
    repo: StoriesRepository = Depends(get_repository),
    store: MediaStore = Depends(get_store),
) -> StreamingResponse:
    """Serve the segment's video as an attachment named after the story."""
    story = repo.load(story_id)
    if story is None:
        raise StoryNotFound(story_id)

    segment = story.get_segment(segment_id)
    if segment is None:
        raise NotFoundError("Segment", f"{story_id}/{segment_id}")

    locator = segment.artifacts.get(MediaKind.VIDEO.value)
    if not locator:
        raise NotFoundError("Video", f"{story_id}/{segment_id}")

    extension = PurePosixPath(locator).suffix.lstrip(".") or "mp4"
    filename = download_filename(story.title, segment_id, extension)
    logger.info(f"[MEDIA] Download {locator} as {filename}")
    return _stream(store, locator, None, {"Content-Disposition": f'attachment; filename="{filename}"'})


@router.get("/{story_id}/segments/{segment_id}/{kind}", summary="Stream a segment artifact")
async def get_segment_media(
    story_id: str,
    segment_id: int,
    kind: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    repo: StoriesRepository = Depends(get_repository),
    store: MediaStore = Depends(get_store),
) -> StreamingResponse:
    """
    Stream a segment's image, audio or video.

    Returns 206 with Content-Range for a satisfiable Range header, 416 for
    an unsatisfiable one, and the full content otherwise.
    """
    try:
        media_kind = MediaKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown media kind: {kind}")

    story = repo.load(story_id)
    if story is None:
        raise StoryNotFound(story_id)

    segment = story.get_segment(segment_id)
    if segment is None:
        raise NotFoundError("Segment", f"{story_id}/{segment_id}")

    locator = segment.artifacts.get(media_kind.value)
    if not locator:
        raise NotFoundError("Media", f"{story_id}/{segment_id}/{kind}")

    return _stream(store, locator, range_header)


@router.get("/{story_id}/reference", summary="Stream the story reference image")
async def get_reference_media(
    story_id: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    repo: StoriesRepository = Depends(get_repository),
    store: MediaStore = Depends(get_store),
) -> StreamingResponse:
    story = repo.load(story_id)
    if story is None:
        raise StoryNotFound(story_id)
    if not story.reference_asset:
        raise NotFoundError("Reference image", story_id)
    return _stream(store, story.reference_asset, range_header)
