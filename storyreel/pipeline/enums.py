"""
Pipeline state enums.
"""
from enum import Enum


class Stage(str, Enum):
    """Story pipeline stages."""
    UPLOADED = "uploaded"
    EXTRACTING_STYLE = "extracting_style"
    GENERATING_REFERENCE_ASSET = "generating_reference_asset"
    GENERATING_SEGMENTS = "generating_segments"
    GENERATING_MEDIA = "generating_media"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.FAILED)


class SegmentStatus(str, Enum):
    """Per-segment generation status."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_settled(self) -> bool:
        return self in (SegmentStatus.COMPLETED, SegmentStatus.FAILED)


class MediaKind(str, Enum):
    """Artifact kinds produced per segment."""
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class FailureKind(str, Enum):
    """How a failed call should be treated by the retry policy."""
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class GenerationStatus(str, Enum):
    """Outcome of a single generate() or poll() call."""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"
