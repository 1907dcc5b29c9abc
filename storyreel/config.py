"""
Application Configuration - Environment Variable Management.
Loads and validates configuration from .env file.
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
    logger.info(f"Loaded environment from {ENV_FILE}")
else:
    logger.debug(f".env file not found at {ENV_FILE}")

MEDIA_KINDS = ("image", "audio", "video")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={value!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number for {name}={value!r}, using {default}")
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AIConfig:
    """Generative back-end credentials and model names."""
    google_api_key: Optional[str] = None  # Gemini text/image + Veo video
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "kC1WIuSSgwH2T8iOV4iJ"
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    text_model: str = "gemini-2.0-flash"
    image_model: str = "gemini-2.0-flash-preview-image-generation"
    video_model: str = "veo-3.0-generate-001"

    @property
    def has_google(self) -> bool:
        return bool(self.google_api_key and not self.google_api_key.startswith("PASTE_"))

    @property
    def has_elevenlabs(self) -> bool:
        return bool(self.elevenlabs_api_key and not self.elevenlabs_api_key.startswith("PASTE_"))


@dataclass
class PathsConfig:
    """File system paths configuration."""
    data_dir: Path
    media_dir: Path
    database_path: Path

    @classmethod
    def detect(cls) -> "PathsConfig":
        """Resolve paths from environment, creating directories as needed."""
        data_dir = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
        data_dir.mkdir(parents=True, exist_ok=True)

        media_dir = Path(os.getenv("MEDIA_DIR", str(data_dir / "media")))
        media_dir.mkdir(parents=True, exist_ok=True)

        database_path = Path(os.getenv("DATABASE_PATH", str(data_dir / "storyreel.db")))

        return cls(
            data_dir=data_dir,
            media_dir=media_dir,
            database_path=database_path,
        )


@dataclass
class SegmentationConfig:
    """How many segments a story is split into."""
    fixed_segment_count: int = 0  # 0 = derive from word count
    min_segments: int = 3
    max_segments: int = 12
    words_per_segment: int = 150


@dataclass
class PipelineConfig:
    """
    Switches and limits for the generation pipeline.

    Passed to the orchestrator at construction; pipeline code never reads
    the environment itself.
    """
    enable_reference_asset: bool = False
    media_kinds: Tuple[str, ...] = MEDIA_KINDS
    max_attempts: int = 3
    retry_base_delay: float = 5.0
    retry_max_delay: float = 60.0
    retry_backoff: str = "exponential"  # or "linear"
    poll_interval: float = 10.0
    poll_timeout: float = 600.0
    inter_segment_delay: float = 2.0
    max_prompt_length: int = 2000
    max_duration_seconds: int = 60
    default_segment_duration: int = 8
    aspect_ratio: str = "16:9"
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)

    def __post_init__(self):
        unknown = [k for k in self.media_kinds if k not in MEDIA_KINDS]
        if unknown:
            raise ValueError(f"Unknown media kinds: {unknown}")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_backoff not in ("exponential", "linear"):
            raise ValueError(f"Unknown retry backoff: {self.retry_backoff}")


@dataclass
class UploadConfig:
    """Limits enforced by the ingestion front door."""
    min_chars: int = 100
    max_chars: int = 100_000
    max_file_size: int = 10 * 1024 * 1024


@dataclass
class ProviderConfig:
    """Back-end selection per capability: 'auto', a back-end name, or 'local'."""
    text: str = "auto"
    image: str = "auto"
    audio: str = "auto"
    video: str = "auto"


@dataclass
class AppConfig:
    """Main Application Configuration."""
    ai: AIConfig
    paths: PathsConfig
    pipeline: PipelineConfig
    upload: UploadConfig
    providers: ProviderConfig
    storage_backend: str = "sqlite"
    resume_on_startup: bool = True
    debug: bool = False

    def validate(self) -> dict:
        """Validate configuration and return status."""
        return {
            "ai": {
                "google_configured": self.ai.has_google,
                "elevenlabs_configured": self.ai.has_elevenlabs,
            },
            "providers": {
                "text": self.providers.text,
                "image": self.providers.image,
                "audio": self.providers.audio,
                "video": self.providers.video,
            },
            "database": {
                "backend": self.storage_backend,
                "path": str(self.paths.database_path),
            },
            "pipeline": {
                "media_kinds": list(self.pipeline.media_kinds),
                "reference_asset": self.pipeline.enable_reference_asset,
                "max_attempts": self.pipeline.max_attempts,
            },
        }

    def log_status(self):
        """Log configuration status (without exposing keys)."""
        status = self.validate()

        logger.info("=" * 50)
        logger.info("Configuration Status:")
        logger.info(f"  Google API: {'OK' if status['ai']['google_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  ElevenLabs API: {'OK' if status['ai']['elevenlabs_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  Storage: {status['database']['backend']}")
        logger.info(f"  Data Dir: {self.paths.data_dir}")
        logger.info(f"  Media Dir: {self.paths.media_dir}")
        logger.info(f"  Media kinds: {', '.join(self.pipeline.media_kinds)}")
        logger.info(f"  Reference asset: {'ON' if self.pipeline.enable_reference_asset else 'OFF'}")
        logger.info("=" * 50)

        if not status["ai"]["google_configured"]:
            logger.warning("No Google API key - text, image and video use local generators")


def _parse_media_kinds(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return MEDIA_KINDS
    kinds = tuple(k.strip().lower() for k in raw.split(",") if k.strip())
    return kinds or MEDIA_KINDS


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    ai_config = AIConfig(
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY"),
        elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID", "kC1WIuSSgwH2T8iOV4iJ"),
        elevenlabs_model_id=os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2"),
        text_model=os.getenv("TEXT_MODEL", "gemini-2.0-flash"),
        image_model=os.getenv("IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation"),
        video_model=os.getenv("VEO_MODEL", "veo-3.0-generate-001"),
    )

    segmentation = SegmentationConfig(
        fixed_segment_count=_env_int("FIXED_SEGMENT_COUNT", 0),
        min_segments=_env_int("MIN_SEGMENTS", 3),
        max_segments=_env_int("MAX_SEGMENTS", 12),
        words_per_segment=_env_int("WORDS_PER_SEGMENT", 150),
    )

    pipeline_config = PipelineConfig(
        enable_reference_asset=_env_bool("ENABLE_REFERENCE_IMAGES"),
        media_kinds=_parse_media_kinds(os.getenv("MEDIA_KINDS")),
        max_attempts=_env_int("MAX_RETRIES", 3),
        retry_base_delay=_env_float("RETRY_BASE_DELAY", 5.0),
        retry_max_delay=_env_float("RETRY_MAX_DELAY", 60.0),
        retry_backoff=os.getenv("RETRY_BACKOFF", "exponential").lower(),
        poll_interval=_env_float("POLL_INTERVAL", 10.0),
        poll_timeout=_env_float("VEO_TIMEOUT", 600.0),
        inter_segment_delay=_env_float("INTER_SEGMENT_DELAY", 2.0),
        segmentation=segmentation,
    )

    upload_config = UploadConfig(
        min_chars=_env_int("MIN_STORY_CHARS", 100),
        max_chars=_env_int("MAX_STORY_CHARS", 100_000),
        max_file_size=_env_int("MAX_FILE_SIZE", 10 * 1024 * 1024),
    )

    provider_config = ProviderConfig(
        text=os.getenv("TEXT_PROVIDER", "auto").lower(),
        image=os.getenv("IMAGE_PROVIDER", "auto").lower(),
        audio=os.getenv("AUDIO_PROVIDER", "auto").lower(),
        video=os.getenv("VIDEO_PROVIDER", "auto").lower(),
    )

    return AppConfig(
        ai=ai_config,
        paths=PathsConfig.detect(),
        pipeline=pipeline_config,
        upload=upload_config,
        providers=provider_config,
        storage_backend=os.getenv("STORAGE_BACKEND", "sqlite").lower(),
        resume_on_startup=_env_bool("RESUME_ON_STARTUP", True),
        debug=_env_bool("DEBUG"),
    )


# Global config instance
config = load_config()
