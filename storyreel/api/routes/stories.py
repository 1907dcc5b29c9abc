"""
Story API Routes.

Upload, status polling, per-segment regeneration, resume and delete.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from ...config import AppConfig
from ...persistence.stories_repo import StoriesRepository
from ...pipeline.models import Story
from ...pipeline.orchestrator import (
    StoryOrchestrator,
    StoryNotFoundError,
    SegmentNotFoundError,
    SegmentBusyError,
    InvalidStateError,
    UnsupportedMediaKindError,
)
from ...services.ingest import (
    IngestError,
    PayloadTooLarge,
    create_story,
    decode_upload,
    title_from_filename,
)
from ..dependencies import get_app_config, get_pipeline, get_repository
from ..exceptions import (
    ConflictError,
    NotFoundError,
    PayloadTooLargeError,
    StoryNotFound,
    ValidationError,
)
from ..schemas import (
    ActionResponse,
    CreateStoryRequest,
    RegenerateRequest,
    StoryListResponse,
    StoryStatusResponse,
    StorySummary,
    UploadResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Stories"])


def _get_story(repo: StoriesRepository, story_id: str) -> Story:
    story = repo.load(story_id)
    if story is None:
        raise StoryNotFound(story_id)
    return story


def _ingest(
    text: str,
    title: Optional[str],
    repo: StoriesRepository,
    orchestrator: StoryOrchestrator,
    app_config: AppConfig,
) -> UploadResponse:
    try:
        story = create_story(text, repo, app_config.upload, title=title)
    except IngestError as e:
        raise ValidationError(str(e))

    orchestrator.start(story.id)
    return UploadResponse(
        success=True,
        story_id=story.id,
        message="Story uploaded successfully. Processing started.",
    )


# =============================================================================
# Upload
# =============================================================================

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a story file",
)
async def upload_story(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    repo: StoriesRepository = Depends(get_repository),
    orchestrator: StoryOrchestrator = Depends(get_pipeline),
    app_config: AppConfig = Depends(get_app_config),
) -> UploadResponse:
    """
    Upload a plain-text story (.txt, UTF-8) and start processing it.
    """
    # read at most one byte past the limit
    data = await file.read(app_config.upload.max_file_size + 1)
    try:
        text = decode_upload(file.filename, file.content_type, data, app_config.upload)
    except PayloadTooLarge as e:
        raise PayloadTooLargeError(str(e))
    except IngestError as e:
        raise ValidationError(str(e))

    logger.info(f"[UPLOAD] {file.filename} ({len(data)} bytes)")
    return _ingest(text, title or title_from_filename(file.filename), repo, orchestrator, app_config)


@router.post(
    "/stories",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a story from text",
)
async def create_story_from_text(
    request: CreateStoryRequest,
    repo: StoriesRepository = Depends(get_repository),
    orchestrator: StoryOrchestrator = Depends(get_pipeline),
    app_config: AppConfig = Depends(get_app_config),
) -> UploadResponse:
    return _ingest(request.text, request.title, repo, orchestrator, app_config)


# =============================================================================
# Reads
# =============================================================================

@router.get("/stories", response_model=StoryListResponse, summary="List stories")
async def list_stories(repo: StoriesRepository = Depends(get_repository)) -> StoryListResponse:
    """All stories, newest first."""
    stories = [StorySummary.from_story(s) for s in repo.list()]
    return StoryListResponse(stories=stories, total=len(stories))


@router.get("/stories/{story_id}", summary="Get full story record")
async def get_story(story_id: str, repo: StoriesRepository = Depends(get_repository)) -> dict:
    story = _get_story(repo, story_id)
    data = story.to_dict()
    data["progress_percent"] = story.progress_percent
    return data


@router.get(
    "/stories/{story_id}/status",
    response_model=StoryStatusResponse,
    summary="Get story progress",
)
async def get_story_status(
    story_id: str,
    repo: StoriesRepository = Depends(get_repository),
) -> StoryStatusResponse:
    """Stage, progress and per-segment status. Safe to poll."""
    return StoryStatusResponse.from_story(_get_story(repo, story_id))


@router.get("/stories/{story_id}/style", summary="Get extracted style")
async def get_story_style(story_id: str, repo: StoriesRepository = Depends(get_repository)) -> dict:
    story = _get_story(repo, story_id)
    if story.style_descriptor is None:
        raise NotFoundError("Style", story_id)
    return story.style_descriptor.to_dict()


# =============================================================================
# Actions
# =============================================================================

@router.post(
    "/stories/{story_id}/segments/{segment_id}/regenerate",
    response_model=ActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Regenerate one segment",
)
async def regenerate_segment(
    story_id: str,
    segment_id: int,
    request: Optional[RegenerateRequest] = None,
    orchestrator: StoryOrchestrator = Depends(get_pipeline),
) -> ActionResponse:
    """
    Regenerate a segment's media in the background.

    The body may replace the prompt and limit the run to some media kinds
    (e.g. only the video); artifacts of the other kinds are kept.

    Returns 409 while the segment or its story is still generating.
    """
    new_prompt = request.prompt if request else None
    kinds = request.kinds if request else None
    try:
        await orchestrator.start_regenerate(story_id, segment_id, new_prompt, kinds=kinds)
    except StoryNotFoundError:
        raise StoryNotFound(story_id)
    except SegmentNotFoundError:
        raise NotFoundError("Segment", f"{story_id}/{segment_id}")
    except SegmentBusyError as e:
        raise ConflictError(str(e))
    except UnsupportedMediaKindError as e:
        raise ValidationError(str(e))

    return ActionResponse(
        success=True,
        story_id=story_id,
        message=f"Regeneration of segment {segment_id} started",
    )


@router.post(
    "/stories/{story_id}/resume",
    response_model=ActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Resume a failed story",
)
async def resume_story(
    story_id: str,
    orchestrator: StoryOrchestrator = Depends(get_pipeline),
) -> ActionResponse:
    try:
        story = await orchestrator.resume(story_id)
    except StoryNotFoundError:
        raise StoryNotFound(story_id)
    except InvalidStateError as e:
        raise ConflictError(str(e))

    return ActionResponse(
        success=True,
        story_id=story_id,
        message=f"Resuming from {story.stage.value}",
        stage=story.stage.value,
    )


@router.delete("/stories/{story_id}", response_model=ActionResponse, summary="Delete a story")
async def delete_story(
    story_id: str,
    orchestrator: StoryOrchestrator = Depends(get_pipeline),
) -> ActionResponse:
    """Delete the story record and all of its media."""
    try:
        await orchestrator.delete(story_id)
    except StoryNotFoundError:
        raise StoryNotFound(story_id)

    return ActionResponse(success=True, story_id=story_id, message="Story deleted")
