"""
Story ingestion: text normalization, validation and record creation.
"""
import re
import logging
from pathlib import PurePath
from typing import Optional

from ..config import UploadConfig
from ..pipeline.models import Story, new_id
from ..persistence.stories_repo import StoriesRepository

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".txt",)
ALLOWED_CONTENT_TYPES = ("text/plain", "application/octet-stream", "")


class IngestError(ValueError):
    """Story text or file rejected at ingestion."""


class PayloadTooLarge(IngestError):
    """Uploaded file exceeds the configured size limit."""


def clean_content(text: str) -> str:
    """Normalize line endings and whitespace."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\t", " ")
    text = re.sub(r" {2,}", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def validate_text(text: str, limits: UploadConfig) -> str:
    """Normalize and check length; returns the cleaned text."""
    cleaned = clean_content(text)
    if len(cleaned) < limits.min_chars:
        raise IngestError(f"Story is too short: at least {limits.min_chars} characters required")
    if len(cleaned) > limits.max_chars:
        raise IngestError(f"Story is too long: at most {limits.max_chars} characters allowed")
    return cleaned


def decode_upload(
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
    limits: UploadConfig,
) -> str:
    """Check an uploaded file and return its decoded text."""
    if len(data) > limits.max_file_size:
        raise PayloadTooLarge(f"File too large: maximum is {limits.max_file_size // (1024 * 1024)}MB")

    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in ALLOWED_EXTENSIONS:
        raise IngestError("Only .txt files are supported")

    base_type = (content_type or "").split(";")[0].strip().lower()
    if base_type not in ALLOWED_CONTENT_TYPES:
        raise IngestError(f"Unsupported content type: {content_type}")

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise IngestError("File must be UTF-8 encoded text")


def title_from_filename(filename: Optional[str]) -> str:
    stem = PurePath(filename or "").stem.strip()
    return stem or "Untitled"


def create_story(
    text: str,
    repo: StoriesRepository,
    limits: UploadConfig,
    title: Optional[str] = None,
) -> Story:
    """Validate text and persist a new Story in the uploaded stage."""
    cleaned = validate_text(text, limits)
    story = Story(
        id=new_id(),
        source_text=cleaned,
        title=(title or "").strip() or "Untitled",
        current_step_description="Uploaded",
    )
    repo.save(story)

    logger.info(f"[INGEST] Story {story.id} created: '{story.title}' ({len(cleaned.split())} words)")
    return story
