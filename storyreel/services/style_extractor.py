"""
Style Extractor - characters, setting and visual style from story text.
"""
import json
import re
import logging
from typing import Any

from ..pipeline.models import StyleDescriptor, Character, Setting, VisualStyle
from ..providers.base import TextProvider
from ..providers.exceptions import TransientProviderError

logger = logging.getLogger(__name__)

STYLE_PROMPT = """
You are a story analysis AI. Analyze the following story and extract detailed information about:
1. All main characters (names, descriptions, physical traits)
2. Setting information (location, time period, atmosphere)
3. Visual style suggestions for video generation (art style, color palette, cinematography)

Format your response as a JSON object with this EXACT structure:
{{
  "characters": [
    {{
      "name": "Character Name",
      "description": "Brief character description and role",
      "visual_traits": "Physical appearance: age, build, hair, eyes, clothing, distinguishing features"
    }}
  ],
  "setting": {{
    "location": "Primary locations in the story",
    "era": "Historical period or era (modern, medieval, futuristic, etc.)",
    "mood": "Overall mood and atmosphere (dark, whimsical, realistic, etc.)"
  }},
  "visual_style": {{
    "art_style": "Recommended visual style (cinematic, animated, realistic, stylized, etc.)",
    "palette": "Dominant colors and color mood (warm, cool, muted, vibrant, etc.)",
    "cinematography": "Camera style and shot recommendations"
  }}
}}

Story to analyze:
{text}

Return ONLY the JSON object, no additional text or markdown.
"""

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def parse_json_response(text: str, provider: str = "text") -> Any:
    """
    Decode a model's JSON answer, tolerating markdown code fences.

    Raises:
        TransientProviderError: The response is not valid JSON
    """
    body = text.strip()
    match = _FENCE_RE.search(body)
    if match:
        body = match.group(1).strip()

    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost object or array in the text
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = body.find(opener), body.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(body[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise TransientProviderError(provider, f"Malformed JSON response: {body[:120]!r}")


def _pick(data: dict, *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def style_from_response(data: Any) -> StyleDescriptor:
    """Build a StyleDescriptor, filling missing fields with defaults."""
    if not isinstance(data, dict):
        raise TransientProviderError("text", "Style response is not a JSON object")

    characters = []
    for item in data.get("characters") or []:
        if not isinstance(item, dict):
            continue
        name = _pick(item, "name")
        if not name:
            continue
        characters.append(Character(
            name=name,
            description=_pick(item, "description"),
            visual_traits=_pick(item, "visual_traits", "physicalTraits", "physical_traits"),
        ))

    setting_data = data.get("setting") or {}
    style_data = data.get("visual_style") or data.get("visualStyle") or {}
    if not isinstance(setting_data, dict):
        setting_data = {}
    if not isinstance(style_data, dict):
        style_data = {}
    defaults_setting, defaults_style = Setting(), VisualStyle()

    return StyleDescriptor(
        characters=characters,
        setting=Setting(
            location=_pick(setting_data, "location") or defaults_setting.location,
            era=_pick(setting_data, "era", "timeperiod") or defaults_setting.era,
            mood=_pick(setting_data, "mood", "atmosphere") or defaults_setting.mood,
        ),
        visual_style=VisualStyle(
            art_style=_pick(style_data, "art_style", "artStyle") or defaults_style.art_style,
            palette=_pick(style_data, "palette", "colorPalette") or defaults_style.palette,
            cinematography=_pick(style_data, "cinematography") or defaults_style.cinematography,
        ),
    )


class StyleExtractor:
    """Extracts the StyleDescriptor of a story through the text capability."""

    def __init__(self, text_provider: TextProvider):
        self.text_provider = text_provider

    async def extract(self, text: str) -> StyleDescriptor:
        logger.info(f"[STYLE] Extracting style from {len(text.split())} words via {self.text_provider.name}")

        response = await self.text_provider.complete(
            STYLE_PROMPT.format(text=text),
            task="style",
            context={"text": text},
        )
        style = style_from_response(parse_json_response(response, self.text_provider.name))

        logger.info(
            f"[STYLE] {len(style.characters)} characters, setting: {style.setting.location}, "
            f"style: {style.visual_style.art_style}"
        )
        return style
