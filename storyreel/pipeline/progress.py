"""
Progress calculation.

Progress is derived from the story stage and the number of settled
segments; it is never stored as an independent value.
"""
from typing import Optional

from .enums import Stage

STAGE_PROGRESS = {
    Stage.UPLOADED: 0,
    Stage.EXTRACTING_STYLE: 10,
    Stage.GENERATING_REFERENCE_ASSET: 15,
    Stage.GENERATING_SEGMENTS: 20,
    Stage.GENERATING_MEDIA: 25,
    Stage.COMPLETED: 100,
}

# generating_media spans 25..95
MEDIA_PROGRESS_SPAN = 70


def compute_progress(
    stage: Stage,
    settled: int,
    total: int,
    failed_stage: Optional[Stage] = None,
) -> int:
    """
    Percentage for a story.

    Args:
        stage: Current story stage
        settled: Segments in completed or failed status
        total: Total number of segments
        failed_stage: Stage the story was in when it failed

    Returns:
        Integer percentage 0-100
    """
    if stage == Stage.FAILED:
        stage = failed_stage or Stage.UPLOADED

    if stage == Stage.GENERATING_MEDIA:
        if total <= 0:
            return STAGE_PROGRESS[Stage.GENERATING_MEDIA]
        settled = max(0, min(settled, total))
        return STAGE_PROGRESS[Stage.GENERATING_MEDIA] + (MEDIA_PROGRESS_SPAN * settled) // total

    return STAGE_PROGRESS.get(stage, 0)
