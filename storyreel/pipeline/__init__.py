"""
Story generation pipeline.
"""
from .enums import Stage, SegmentStatus, MediaKind, FailureKind, GenerationStatus
from .models import (
    Story,
    Segment,
    StyleDescriptor,
    Character,
    Setting,
    VisualStyle,
    Artifact,
    Failure,
    GenerationOptions,
    GenerationResult,
    OperationHandle,
)
from .progress import compute_progress

__all__ = [
    "Stage",
    "SegmentStatus",
    "MediaKind",
    "FailureKind",
    "GenerationStatus",
    "Story",
    "Segment",
    "StyleDescriptor",
    "Character",
    "Setting",
    "VisualStyle",
    "Artifact",
    "Failure",
    "GenerationOptions",
    "GenerationResult",
    "OperationHandle",
    "compute_progress",
]
