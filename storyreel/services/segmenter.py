"""
Segmenter - splits a story into ordered scenes.
"""
import math
import logging
from typing import List, Any, Optional

from ..config import SegmentationConfig
from ..pipeline.models import Segment, StyleDescriptor
from ..providers.base import TextProvider
from ..providers.exceptions import TransientProviderError
from .style_extractor import parse_json_response

logger = logging.getLogger(__name__)

SEGMENT_PROMPT = """
You are a story-to-video AI assistant. Break the following story into {count} distinct video scenes.

IMPORTANT: Create EXACTLY {count} scenes based on the story's natural structure and pacing.

STYLE CONTEXT:
{style_context}

For each scene, provide:
1. A detailed visual scene description (what should be shown)
2. The narration text (what should be spoken, taken from the story)
3. A short caption/title for the scene
4. A detailed video generation prompt incorporating the style context above

Format your response as a JSON array with this structure:
[
  {{
    "scene_description": "Brief description",
    "narration": "The narration text from the story",
    "caption": "Scene title",
    "prompt": "Detailed generation prompt: visual style, camera angles, lighting, mood, character appearances, setting details, movement and action.",
    "duration": {duration}
  }}
]

Story to analyze:
{text}

IMPORTANT:
- Create EXACTLY {count} scenes (no more, no less)
- Distribute the story content evenly across all scenes
- Include character descriptions from the style context when characters appear
- Keep every prompt under {max_prompt} characters

Return ONLY the JSON array, no additional text or markdown.
"""

# (upper word bound, segment count)
WORD_COUNT_BANDS = [
    (300, 3),
    (600, 4),
    (900, 5),
    (1200, 6),
    (1500, 7),
    (2000, 8),
]


def calculate_segment_count(word_count: int, settings: SegmentationConfig) -> int:
    """Number of scenes for a story of `word_count` words."""
    if settings.fixed_segment_count > 0:
        return max(settings.min_segments, min(settings.max_segments, settings.fixed_segment_count))

    for limit, count in WORD_COUNT_BANDS:
        if word_count < limit:
            break
    else:
        count = math.ceil(word_count / settings.words_per_segment)

    return max(settings.min_segments, min(settings.max_segments, count))


def build_style_context(style: Optional[StyleDescriptor]) -> str:
    """Style block shared by segmentation and generation prompts."""
    if style is None:
        return ""

    lines = []
    if style.characters:
        lines.append("Characters:")
        for char in style.characters:
            line = f"- {char.name}: {char.description}".rstrip(": ")
            if char.visual_traits:
                line += f". Physical: {char.visual_traits}"
            lines.append(line)
        lines.append("")

    lines.append(f"Setting: {style.setting.location}, {style.setting.era}")
    lines.append(f"Atmosphere: {style.setting.mood}")
    lines.append("")
    lines.append(f"Visual Style: {style.visual_style.art_style}")
    lines.append(f"Color Palette: {style.visual_style.palette}")
    lines.append(f"Cinematography: {style.visual_style.cinematography}")
    return "\n".join(lines)


def _text(item: dict, *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


class Segmenter:
    """Turns story text plus style into an ordered list of Segments."""

    def __init__(
        self,
        text_provider: TextProvider,
        settings: Optional[SegmentationConfig] = None,
        default_duration: int = 8,
        max_prompt_length: int = 2000,
    ):
        self.text_provider = text_provider
        self.settings = settings or SegmentationConfig()
        self.default_duration = default_duration
        self.max_prompt_length = max_prompt_length

    async def segment(self, text: str, style: Optional[StyleDescriptor]) -> List[Segment]:
        count = calculate_segment_count(len(text.split()), self.settings)
        logger.info(f"[SEGMENTS] {len(text.split())} words -> {count} segments")

        prompt = SEGMENT_PROMPT.format(
            count=count,
            style_context=build_style_context(style),
            duration=self.default_duration,
            text=text,
            max_prompt=self.max_prompt_length,
        )
        response = await self.text_provider.complete(
            prompt,
            task="segments",
            context={"text": text, "segment_count": count},
        )
        segments = self._to_segments(parse_json_response(response, self.text_provider.name))

        if len(segments) != count:
            logger.warning(f"[SEGMENTS] Expected {count} segments but got {len(segments)}")
        logger.info(f"[SEGMENTS] Generated {len(segments)} segments")
        return segments

    def _to_segments(self, data: Any) -> List[Segment]:
        if isinstance(data, dict):
            data = data.get("segments") or data.get("scenes")
        if not isinstance(data, list):
            raise TransientProviderError(self.text_provider.name, "Segment response is not a JSON array")

        items = [item for item in data if isinstance(item, dict)]
        if not items:
            raise TransientProviderError(self.text_provider.name, "Segment response contains no scenes")

        segments = []
        for index, item in enumerate(items, start=1):
            description = _text(item, "scene_description", "sceneDescription", "description")
            narration = _text(item, "narration", "narration_text")
            prompt = _text(item, "prompt", "generation_prompt", "imagePrompt") or description or narration
            segments.append(Segment(
                id=index,
                scene_description=description,
                narration_text=narration,
                caption=_text(item, "caption", "title") or f"Scene {index}",
                generation_prompt=prompt,
                target_duration_seconds=self._duration(item.get("duration")),
            ))
        return segments

    def _duration(self, value: Any) -> int:
        try:
            duration = int(value)
        except (TypeError, ValueError):
            return self.default_duration
        return duration if duration > 0 else self.default_duration
