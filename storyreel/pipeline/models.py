"""
Pipeline data model: stories, segments, style metadata and generation results.
"""
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .enums import Stage, SegmentStatus, MediaKind, FailureKind, GenerationStatus
from .progress import compute_progress


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Style metadata
# =============================================================================

@dataclass
class Character:
    name: str
    description: str = ""
    visual_traits: str = ""


@dataclass
class Setting:
    location: str = "Generic location"
    era: str = "Contemporary"
    mood: str = "Neutral"


@dataclass
class VisualStyle:
    art_style: str = "Cinematic realistic"
    palette: str = "Natural colors"
    cinematography: str = "Dynamic camera work"


@dataclass
class StyleDescriptor:
    """Characters, setting and visual style shared by every scene of a story."""
    characters: List[Character] = field(default_factory=list)
    setting: Setting = field(default_factory=Setting)
    visual_style: VisualStyle = field(default_factory=VisualStyle)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StyleDescriptor":
        return cls(
            characters=[Character(**c) for c in data.get("characters", [])],
            setting=Setting(**data.get("setting", {})),
            visual_style=VisualStyle(**data.get("visual_style", {})),
        )


# =============================================================================
# Generation results
# =============================================================================

@dataclass
class Failure:
    """Typed failure returned by generators, the poller and the retry policy."""
    kind: FailureKind
    message: str
    provider: Optional[str] = None
    retry_after: Optional[float] = None

    @property
    def retryable(self) -> bool:
        return self.kind in (FailureKind.TRANSIENT, FailureKind.TIMEOUT)

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ""
        return f"{prefix}{self.message}"


@dataclass
class Artifact:
    """Generated media payload."""
    kind: MediaKind
    data: bytes
    content_type: str

    @property
    def extension(self) -> str:
        return CONTENT_TYPE_EXTENSIONS.get(self.content_type, "bin")


CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "audio/wav": "wav",
    "audio/mpeg": "mp3",
    "video/mp4": "mp4",
}


@dataclass
class OperationHandle:
    """Handle for a long-running remote generation job."""
    operation_id: str
    provider: str
    kind: MediaKind
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationOptions:
    duration_seconds: Optional[int] = None
    reference: Optional[Artifact] = None
    aspect_ratio: str = "16:9"
    voice_id: Optional[str] = None


@dataclass
class GenerationResult:
    """Result of generate() or poll(): an artifact, a pending operation, or a failure."""
    status: GenerationStatus
    artifact: Optional[Artifact] = None
    operation: Optional[OperationHandle] = None
    failure: Optional[Failure] = None

    @classmethod
    def completed(cls, artifact: Artifact) -> "GenerationResult":
        return cls(status=GenerationStatus.COMPLETED, artifact=artifact)

    @classmethod
    def pending(cls, operation: OperationHandle) -> "GenerationResult":
        return cls(status=GenerationStatus.PENDING, operation=operation)

    @classmethod
    def failed(cls, failure: Failure) -> "GenerationResult":
        return cls(status=GenerationStatus.FAILED, failure=failure)


# =============================================================================
# Story / Segment
# =============================================================================

@dataclass
class Segment:
    """One scene of a story."""
    id: int
    scene_description: str
    narration_text: str
    caption: str
    generation_prompt: str
    target_duration_seconds: int = 8
    status: SegmentStatus = SegmentStatus.PENDING
    artifacts: Dict[str, str] = field(default_factory=dict)  # kind -> locator
    last_error: Optional[str] = None
    generation_id: Optional[str] = None
    attempt_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        data = dict(data)
        data["status"] = SegmentStatus(data.get("status", SegmentStatus.PENDING.value))
        data["artifacts"] = dict(data.get("artifacts") or {})
        return cls(**data)


@dataclass
class Story:
    """A story and everything generated for it."""
    id: str
    source_text: str
    title: str = "Untitled"
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    stage: Stage = Stage.UPLOADED
    style_descriptor: Optional[StyleDescriptor] = None
    reference_asset: Optional[str] = None
    segments: List[Segment] = field(default_factory=list)
    current_step_description: str = ""
    terminal_error: Optional[str] = None
    failed_stage: Optional[Stage] = None

    @property
    def settled_count(self) -> int:
        return sum(1 for s in self.segments if s.status.is_settled)

    @property
    def progress_percent(self) -> int:
        return compute_progress(
            self.stage,
            self.settled_count,
            len(self.segments),
            failed_stage=self.failed_stage,
        )

    def get_segment(self, segment_id: int) -> Optional[Segment]:
        for segment in self.segments:
            if segment.id == segment_id:
                return segment
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_text": self.source_text,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "stage": self.stage.value,
            "style_descriptor": self.style_descriptor.to_dict() if self.style_descriptor else None,
            "reference_asset": self.reference_asset,
            "segments": [s.to_dict() for s in self.segments],
            "current_step_description": self.current_step_description,
            "terminal_error": self.terminal_error,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Story":
        style = data.get("style_descriptor")
        failed_stage = data.get("failed_stage")
        return cls(
            id=data["id"],
            source_text=data["source_text"],
            title=data.get("title") or "Untitled",
            created_at=data.get("created_at") or utc_now(),
            updated_at=data.get("updated_at") or utc_now(),
            stage=Stage(data.get("stage", Stage.UPLOADED.value)),
            style_descriptor=StyleDescriptor.from_dict(style) if style else None,
            reference_asset=data.get("reference_asset"),
            segments=[Segment.from_dict(s) for s in data.get("segments", [])],
            current_step_description=data.get("current_step_description", ""),
            terminal_error=data.get("terminal_error"),
            failed_stage=Stage(failed_stage) if failed_stage else None,
        )
