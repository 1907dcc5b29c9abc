"""
Tests for ingestion, style extraction and segmentation.
"""
import json

import pytest

from storyreel.config import SegmentationConfig, UploadConfig
from storyreel.pipeline.enums import Stage
from storyreel.pipeline.models import Character, StyleDescriptor
from storyreel.providers.base import TextProvider
from storyreel.providers.exceptions import TransientProviderError
from storyreel.services.ingest import (
    IngestError,
    PayloadTooLarge,
    clean_content,
    create_story,
    decode_upload,
    title_from_filename,
    validate_text,
)
from storyreel.services.segmenter import Segmenter, build_style_context, calculate_segment_count
from storyreel.services.style_extractor import StyleExtractor, parse_json_response, style_from_response


class CannedTextProvider(TextProvider):
    """Returns a fixed response and records what it was asked."""

    def __init__(self, response: str):
        self.response = response
        self.requests = []

    @property
    def name(self) -> str:
        return "canned"

    @property
    def is_available(self) -> bool:
        return True

    async def complete(self, prompt, task="generic", context=None):
        self.requests.append((prompt, task, context))
        return self.response


class TestIngest:

    def test_clean_content_normalizes_whitespace(self):
        text = "Line one.\r\n\r\n\r\n\r\nLine   two.\tTabbed.\r  "
        assert clean_content(text) == "Line one.\n\nLine two. Tabbed."

    def test_validate_text_length_bounds(self):
        limits = UploadConfig(min_chars=10, max_chars=50)
        assert validate_text("  A short but valid story.  ", limits) == "A short but valid story."
        with pytest.raises(IngestError, match="too short"):
            validate_text("tiny", limits)
        with pytest.raises(IngestError, match="too long"):
            validate_text("x" * 51, limits)

    def test_length_is_checked_after_cleanup(self):
        limits = UploadConfig(min_chars=10, max_chars=50)
        with pytest.raises(IngestError):
            validate_text("a" + " " * 40 + "b", limits)

    def test_decode_upload_accepts_utf8_text(self):
        data = "\ufeff\u00c9lodie opened the door.".encode("utf-8")
        assert decode_upload("story.txt", "text/plain; charset=utf-8", data, UploadConfig()) == "\u00c9lodie opened the door."

    @pytest.mark.parametrize("filename,content_type", [
        ("story.pdf", "application/pdf"),
        ("story.docx", "text/plain"),
        ("story.txt", "image/png"),
        (None, "text/plain"),
    ])
    def test_decode_upload_rejects_wrong_type(self, filename, content_type):
        with pytest.raises(IngestError):
            decode_upload(filename, content_type, b"hello", UploadConfig())

    def test_decode_upload_rejects_binary(self):
        with pytest.raises(IngestError, match="UTF-8"):
            decode_upload("story.txt", "text/plain", b"\xff\xfe\x00bad", UploadConfig())

    def test_decode_upload_rejects_large_file(self):
        with pytest.raises(PayloadTooLarge):
            decode_upload("story.txt", "text/plain", b"x" * 101, UploadConfig(max_file_size=100))

    def test_title_from_filename(self):
        assert title_from_filename("The Lighthouse.txt") == "The Lighthouse"
        assert title_from_filename(None) == "Untitled"

    def test_create_story_persists_uploaded_story(self, repo):
        story = create_story("word " * 40, repo, UploadConfig(), title="  My Story ")

        stored = repo.load(story.id)
        assert stored.stage == Stage.UPLOADED
        assert stored.title == "My Story"
        assert stored.progress_percent == 0
        assert stored.segments == []


class TestParseJsonResponse:

    def test_plain_json(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert parse_json_response('```json\n[{"a": 1}]\n```') == [{"a": 1}]

    def test_json_with_surrounding_prose(self):
        assert parse_json_response('Sure! Here it is: {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}

    def test_malformed_json_is_transient(self):
        with pytest.raises(TransientProviderError):
            parse_json_response("I cannot help with that.", "gemini")


class TestStyleExtraction:

    def test_missing_fields_get_defaults(self):
        style = style_from_response({"characters": [{"name": "Ada"}, {"description": "no name"}]})

        assert [c.name for c in style.characters] == ["Ada"]
        assert style.setting.location == "Generic location"
        assert style.setting.era == "Contemporary"
        assert style.visual_style.art_style == "Cinematic realistic"

    def test_camel_case_keys_accepted(self):
        style = style_from_response({
            "characters": [{"name": "Ada", "physicalTraits": "red coat"}],
            "setting": {"location": "Harbor", "timeperiod": "1920s", "atmosphere": "foggy"},
            "visualStyle": {"artStyle": "Film noir", "colorPalette": "Monochrome"},
        })

        assert style.characters[0].visual_traits == "red coat"
        assert style.setting.era == "1920s"
        assert style.setting.mood == "foggy"
        assert style.visual_style.art_style == "Film noir"
        assert style.visual_style.palette == "Monochrome"
        assert style.visual_style.cinematography == "Dynamic camera work"

    def test_non_object_response_is_transient(self):
        with pytest.raises(TransientProviderError):
            style_from_response(["not", "an", "object"])

    @pytest.mark.asyncio
    async def test_extract_uses_style_task(self):
        provider = CannedTextProvider(json.dumps({"characters": [{"name": "Ada"}], "setting": {"location": "Harbor"}}))

        style = await StyleExtractor(provider).extract("Ada walked along the harbor.")

        assert style.characters[0].name == "Ada"
        assert style.setting.location == "Harbor"
        prompt, task, context = provider.requests[0]
        assert task == "style"
        assert "Ada walked along the harbor." in prompt
        assert context == {"text": "Ada walked along the harbor."}


class TestSegmentCount:

    @pytest.mark.parametrize("words,expected", [
        (50, 3),
        (299, 3),
        (300, 4),
        (500, 4),
        (600, 5),
        (1000, 6),
        (1499, 7),
        (1999, 8),
        (2400, 12),
        (20000, 12),
    ])
    def test_word_count_bands(self, words, expected):
        assert calculate_segment_count(words, SegmentationConfig()) == expected

    def test_fixed_count_is_clamped(self):
        assert calculate_segment_count(100, SegmentationConfig(fixed_segment_count=5)) == 5
        assert calculate_segment_count(100, SegmentationConfig(fixed_segment_count=50)) == 12


class TestSegmenter:

    @pytest.mark.asyncio
    async def test_segments_numbered_with_defaults(self):
        provider = CannedTextProvider(json.dumps([
            {"scene_description": "A harbor at dawn", "narration": "The boats rocked.", "prompt": "harbor at dawn", "duration": 6},
            {"scene_description": "A storm", "narration": "Thunder rolled.", "caption": "Storm"},
            {"narration": "Only narration."},
        ]))

        segments = await Segmenter(provider).segment("word " * 100, StyleDescriptor())

        assert [s.id for s in segments] == [1, 2, 3]
        assert segments[0].caption == "Scene 1"
        assert segments[0].target_duration_seconds == 6
        assert segments[1].caption == "Storm"
        assert segments[1].generation_prompt == "A storm"
        assert segments[1].target_duration_seconds == 8
        assert segments[2].generation_prompt == "Only narration."
        assert all(s.status.value == "pending" for s in segments)

    @pytest.mark.asyncio
    async def test_requests_computed_count(self):
        provider = CannedTextProvider('{"segments": [{"narration": "One."}]}')

        segments = await Segmenter(provider).segment("word " * 500, None)

        assert len(segments) == 1
        _, task, context = provider.requests[0]
        assert task == "segments"
        assert context["segment_count"] == 4

    @pytest.mark.asyncio
    async def test_empty_list_is_transient(self):
        with pytest.raises(TransientProviderError):
            await Segmenter(CannedTextProvider("[]")).segment("word " * 100, None)

    def test_style_context_mentions_characters(self):
        style = StyleDescriptor(characters=[Character(name="Ada", description="a sailor", visual_traits="red coat")])
        context = build_style_context(style)

        assert "- Ada: a sailor. Physical: red coat" in context
        assert "Visual Style: Cinematic realistic" in context
        assert build_style_context(None) == ""
