"""
Google Gemini providers: text completion and image generation.

API: https://generativelanguage.googleapis.com/v1beta
"""
import base64
import logging
from typing import Optional, Dict, Any, List

import httpx

from ..pipeline.enums import MediaKind
from ..pipeline.models import Artifact, GenerationOptions, GenerationResult
from .base import MediaGenerator, TextProvider, HTTPProviderMixin
from .exceptions import ProviderUnavailable, TransientProviderError, PermanentProviderError

logger = logging.getLogger(__name__)

GOOGLE_API_URL = "https://generativelanguage.googleapis.com/v1beta"


def _candidate_parts(data: Dict[str, Any], provider: str) -> List[Dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback", {})
        if feedback.get("blockReason"):
            raise PermanentProviderError(provider, f"Content blocked: {feedback['blockReason']}")
        raise TransientProviderError(provider, "No candidates in response")

    candidate = candidates[0]
    if candidate.get("finishReason") in ("SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST"):
        raise PermanentProviderError(provider, f"Content blocked: {candidate['finishReason']}")
    return candidate.get("content", {}).get("parts", [])


class GeminiTextProvider(HTTPProviderMixin, TextProvider):
    """Gemini generateContent for JSON analysis prompts."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        from ..config import config
        self.api_key = api_key or config.ai.google_api_key or ""
        self.model = model or config.ai.text_model
        self.client = client or httpx.AsyncClient(timeout=120.0)

        if not self.api_key:
            logger.warning("[GEMINI] No API key configured - text analysis disabled")

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        prompt: str,
        task: str = "generic",
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        if not self.is_available:
            raise ProviderUnavailable(self.name, "Missing GOOGLE_API_KEY")

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"} if task != "generic" else {},
        }

        logger.info(f"[GEMINI] Completing '{task}' prompt with {self.model}")
        response = await self._request(
            "POST",
            f"{GOOGLE_API_URL}/models/{self.model}:generateContent",
            headers={"x-goog-api-key": self.api_key},
            json=payload,
        )

        parts = _candidate_parts(response.json(), self.name)
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise TransientProviderError(self.name, "Empty text response")
        return text


class GeminiImageGenerator(HTTPProviderMixin, MediaGenerator):
    """Gemini image generation (inline PNG in the response)."""

    kind = MediaKind.IMAGE

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_prompt_length: int = 2000,
        max_duration_seconds: int = 60,
    ):
        super().__init__(max_prompt_length, max_duration_seconds)
        from ..config import config
        self.api_key = api_key or config.ai.google_api_key or ""
        self.model = model or config.ai.image_model
        self.client = client or httpx.AsyncClient(timeout=120.0)

        if not self.api_key:
            logger.warning("[GEMINI] No API key configured - image generation disabled")
        else:
            logger.info(f"[GEMINI] Image generation with model: {self.model}")

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        if not self.is_available:
            raise ProviderUnavailable(self.name, "Missing GOOGLE_API_KEY")
        self.validate_request(prompt, options)

        orientation = {
            "16:9": "horizontal landscape orientation (16:9 aspect ratio)",
            "9:16": "vertical portrait orientation (9:16 aspect ratio)",
            "1:1": "square (1:1 aspect ratio)",
        }.get(options.aspect_ratio, "")

        parts: List[Dict[str, Any]] = [
            {"text": f"Generate a high-quality cinematic image, {orientation}: {prompt}"}
        ]
        if options.reference is not None:
            parts.append({
                "inlineData": {
                    "mimeType": options.reference.content_type,
                    "data": base64.b64encode(options.reference.data).decode("ascii"),
                }
            })

        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

        logger.info(f"[GEMINI] Generating image: {prompt[:100]}...")
        response = await self._request(
            "POST",
            f"{GOOGLE_API_URL}/models/{self.model}:generateContent",
            headers={"x-goog-api-key": self.api_key},
            json=payload,
        )

        for part in _candidate_parts(response.json(), self.name):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                return GenerationResult.completed(
                    Artifact(
                        kind=MediaKind.IMAGE,
                        data=base64.b64decode(inline["data"]),
                        content_type=inline.get("mimeType", "image/png"),
                    )
                )

        raise TransientProviderError(self.name, "No image data in response")
