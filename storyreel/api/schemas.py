"""
Pydantic schemas for API requests and responses.
"""
from datetime import datetime
from typing import Optional, List, Dict

from pydantic import BaseModel, Field, field_validator

from ..pipeline.enums import MediaKind
from ..pipeline.models import Story, Segment


class CreateStoryRequest(BaseModel):
    """POST /api/stories request body."""
    text: str = Field(..., min_length=1, description="Story text (100-100000 characters after cleanup)")
    title: Optional[str] = Field(default=None, max_length=200)


class UploadResponse(BaseModel):
    success: bool
    story_id: str
    message: str


class RegenerateRequest(BaseModel):
    """Optional replacement prompt and media kinds for a segment."""
    prompt: Optional[str] = Field(default=None, max_length=2000)
    kinds: Optional[List[MediaKind]] = Field(
        default=None,
        description="Only regenerate these media kinds (image, audio, video); all when omitted",
    )

    @field_validator("prompt")
    @classmethod
    def strip_prompt(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ActionResponse(BaseModel):
    success: bool
    story_id: str
    message: str
    stage: Optional[str] = None


class SegmentStatusResponse(BaseModel):
    id: int
    status: str
    caption: str
    last_error: Optional[str] = None
    artifacts: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_segment(cls, story_id: str, segment: Segment) -> "SegmentStatusResponse":
        return cls(
            id=segment.id,
            status=segment.status.value,
            caption=segment.caption,
            last_error=segment.last_error,
            artifacts={
                kind: f"/api/media/{story_id}/segments/{segment.id}/{kind}"
                for kind in segment.artifacts
            },
        )


class StoryStatusResponse(BaseModel):
    """GET /api/stories/{id}/status."""
    story_id: str
    stage: str
    progress_percent: int
    current_step_description: str
    segments: List[SegmentStatusResponse]
    terminal_error: Optional[str] = None

    @classmethod
    def from_story(cls, story: Story) -> "StoryStatusResponse":
        return cls(
            story_id=story.id,
            stage=story.stage.value,
            progress_percent=story.progress_percent,
            current_step_description=story.current_step_description,
            segments=[SegmentStatusResponse.from_segment(story.id, s) for s in story.segments],
            terminal_error=story.terminal_error,
        )


class StorySummary(BaseModel):
    story_id: str
    title: str
    stage: str
    progress_percent: int
    segment_count: int
    created_at: str
    updated_at: str

    @classmethod
    def from_story(cls, story: Story) -> "StorySummary":
        return cls(
            story_id=story.id,
            title=story.title,
            stage=story.stage.value,
            progress_percent=story.progress_percent,
            segment_count=len(story.segments),
            created_at=story.created_at,
            updated_at=story.updated_at,
        )


class StoryListResponse(BaseModel):
    stories: List[StorySummary]
    total: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    storage: str
    active_runs: int
    timestamp: datetime
