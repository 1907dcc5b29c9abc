"""
Story analysis services.
"""
from .style_extractor import StyleExtractor, parse_json_response
from .segmenter import Segmenter, calculate_segment_count, build_style_context
from .ingest import IngestError, PayloadTooLarge, clean_content, create_story, decode_upload

__all__ = [
    "StyleExtractor",
    "parse_json_response",
    "Segmenter",
    "calculate_segment_count",
    "build_style_context",
    "IngestError",
    "PayloadTooLarge",
    "clean_content",
    "create_story",
    "decode_upload",
]
