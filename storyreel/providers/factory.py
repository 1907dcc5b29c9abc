"""
Provider factories.

Back-ends are selected per capability by tag. 'auto' picks the remote
back-end when its key is configured and falls back to local otherwise.
"""
import logging
from typing import Dict, Literal, Optional

from ..pipeline.enums import MediaKind
from .base import MediaGenerator, TextProvider
from .gemini import GeminiImageGenerator, GeminiTextProvider
from .veo import VeoVideoGenerator
from .elevenlabs import ElevenLabsAudioGenerator
from .local import (
    LocalImageGenerator,
    LocalAudioGenerator,
    LocalVideoGenerator,
    LocalTextProvider,
)

logger = logging.getLogger(__name__)

ProviderType = Literal["auto", "gemini", "veo", "elevenlabs", "local"]


class MediaGeneratorFactory:
    """Factory for creating media generators with automatic fallback."""

    _providers = {
        MediaKind.IMAGE: {"gemini": GeminiImageGenerator, "local": LocalImageGenerator},
        MediaKind.AUDIO: {"elevenlabs": ElevenLabsAudioGenerator, "local": LocalAudioGenerator},
        MediaKind.VIDEO: {"veo": VeoVideoGenerator, "local": LocalVideoGenerator},
    }

    @classmethod
    def available(cls, kind: MediaKind) -> list:
        return list(cls._providers[kind])

    @classmethod
    def create(cls, kind: MediaKind, provider: str = "auto", **kwargs) -> MediaGenerator:
        registry = cls._providers[kind]
        if provider == "auto":
            return cls._create_auto(kind, **kwargs)
        if provider not in registry:
            logger.warning(f"[PROVIDERS] Unknown {kind.value} provider '{provider}', using local")
            return registry["local"](**kwargs)
        return registry[provider](**kwargs)

    @classmethod
    def _create_auto(cls, kind: MediaKind, **kwargs) -> MediaGenerator:
        for name, provider_cls in cls._providers[kind].items():
            if name == "local":
                continue
            p = provider_cls(**kwargs)
            if p.is_available:
                return p
        return cls._providers[kind]["local"](**kwargs)


class TextProviderFactory:
    """Factory for the text analysis capability."""

    _providers = {
        "gemini": GeminiTextProvider,
        "local": LocalTextProvider,
    }

    @classmethod
    def create(cls, provider: str = "auto") -> TextProvider:
        if provider == "auto":
            p = GeminiTextProvider()
            return p if p.is_available else LocalTextProvider()
        if provider not in cls._providers:
            logger.warning(f"[PROVIDERS] Unknown text provider '{provider}', using local")
            return LocalTextProvider()
        return cls._providers[provider]()


def build_media_generators(app_config=None) -> Dict[MediaKind, MediaGenerator]:
    """Create one generator per media kind from configuration."""
    if app_config is None:
        from ..config import config as app_config

    selection = {
        MediaKind.IMAGE: app_config.providers.image,
        MediaKind.AUDIO: app_config.providers.audio,
        MediaKind.VIDEO: app_config.providers.video,
    }
    limits = {
        "max_prompt_length": app_config.pipeline.max_prompt_length,
        "max_duration_seconds": app_config.pipeline.max_duration_seconds,
    }

    generators = {}
    for kind, provider in selection.items():
        # narration limits differ from visual prompt limits
        kwargs = {} if kind == MediaKind.AUDIO else dict(limits)
        generators[kind] = MediaGeneratorFactory.create(kind, provider, **kwargs)
        logger.info(f"[PROVIDERS] {kind.value}: {generators[kind].name}")
    return generators


def get_text_provider(provider: Optional[str] = None) -> TextProvider:
    if provider is None:
        from ..config import config
        provider = config.providers.text
    text_provider = TextProviderFactory.create(provider)
    logger.info(f"[PROVIDERS] text: {text_provider.name}")
    return text_provider
