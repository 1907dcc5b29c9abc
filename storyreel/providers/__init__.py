"""
Providers Layer.

Unified access to the generative back-ends:
- Text analysis (Gemini)
- Images (Gemini)
- Narration (ElevenLabs)
- Video (Veo, long-running operations)

Every capability has a local implementation used as fallback.
"""
from .exceptions import (
    ProviderError,
    TransientProviderError,
    PermanentProviderError,
    ProviderUnavailable,
    ValidationFailed,
)
from .base import MediaGenerator, TextProvider
from .factory import (
    MediaGeneratorFactory,
    TextProviderFactory,
    build_media_generators,
    get_text_provider,
)

__all__ = [
    # Exceptions
    "ProviderError",
    "TransientProviderError",
    "PermanentProviderError",
    "ProviderUnavailable",
    "ValidationFailed",

    # Contracts
    "MediaGenerator",
    "TextProvider",

    # Factories
    "MediaGeneratorFactory",
    "TextProviderFactory",
    "build_media_generators",
    "get_text_provider",
]
