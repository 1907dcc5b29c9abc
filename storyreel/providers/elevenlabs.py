"""
ElevenLabs narration provider.
"""
import logging
from typing import Optional

import httpx

from ..pipeline.enums import MediaKind
from ..pipeline.models import Artifact, GenerationOptions, GenerationResult
from .base import MediaGenerator, HTTPProviderMixin
from .exceptions import ProviderUnavailable, TransientProviderError

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"


class ElevenLabsAudioGenerator(HTTPProviderMixin, MediaGenerator):
    """ElevenLabs TTS API provider."""

    kind = MediaKind.AUDIO
    ENV_KEY = "ELEVENLABS_API_KEY"

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_prompt_length: int = 5000,
        max_duration_seconds: int = 300,
    ):
        super().__init__(max_prompt_length, max_duration_seconds)
        from ..config import config
        self.api_key = api_key or config.ai.elevenlabs_api_key or ""
        self.voice_id = voice_id or config.ai.elevenlabs_voice_id
        self.model_id = model_id or config.ai.elevenlabs_model_id
        self.client = client or httpx.AsyncClient(timeout=120.0)

    @property
    def name(self) -> str:
        return "elevenlabs"

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        if not self.is_available:
            raise ProviderUnavailable(self.name, f"Missing {self.ENV_KEY}")
        self.validate_request(prompt, options)

        voice_id = options.voice_id or self.voice_id
        logger.info(f"[ELEVENLABS] Synthesizing {len(prompt.split())} words with voice {voice_id}")

        response = await self._request(
            "POST",
            f"{ELEVENLABS_API_URL}/text-to-speech/{voice_id}",
            headers={"xi-api-key": self.api_key, "Accept": "audio/mpeg"},
            json={
                "text": prompt,
                "model_id": self.model_id,
                "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
            },
        )

        if not response.content:
            raise TransientProviderError(self.name, "Empty audio response")

        return GenerationResult.completed(
            Artifact(kind=MediaKind.AUDIO, data=response.content, content_type="audio/mpeg")
        )
