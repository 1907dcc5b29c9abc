"""
Google Veo video generation.

Uses the long-running operation API:
1. predictLongRunning -> operation name
2. Poll the operation until done
3. Download the generated video
"""
import base64
import logging
from typing import Optional, Dict, Any

import httpx

from ..pipeline.enums import MediaKind, FailureKind
from ..pipeline.models import (
    Artifact,
    Failure,
    GenerationOptions,
    GenerationResult,
    OperationHandle,
)
from .base import MediaGenerator, HTTPProviderMixin
from .exceptions import ProviderUnavailable
from .gemini import GOOGLE_API_URL

logger = logging.getLogger(__name__)

# google.rpc.Code values worth retrying
TRANSIENT_RPC_CODES = {4, 8, 10, 13, 14}


class VeoVideoGenerator(HTTPProviderMixin, MediaGenerator):
    """Veo text/image-to-video generator."""

    kind = MediaKind.VIDEO
    supports_polling = True

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
        self.model = model or config.ai.video_model
        self.client = client or httpx.AsyncClient(timeout=120.0, follow_redirects=True)

        if not self.api_key:
            logger.warning("[VEO] No API key configured - video generation disabled")
        else:
            logger.info(f"[VEO] Initialized with model: {self.model}")

    @property
    def name(self) -> str:
        return "veo"

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key}

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        if not self.is_available:
            raise ProviderUnavailable(self.name, "Missing GOOGLE_API_KEY")
        self.validate_request(prompt, options)

        instance: Dict[str, Any] = {"prompt": prompt}
        if options.reference is not None:
            instance["image"] = {
                "bytesBase64Encoded": base64.b64encode(options.reference.data).decode("ascii"),
                "mimeType": options.reference.content_type,
            }

        parameters: Dict[str, Any] = {"aspectRatio": options.aspect_ratio}
        if options.duration_seconds:
            parameters["durationSeconds"] = options.duration_seconds

        logger.info(f"[VEO] Starting video generation: {prompt[:100]}...")
        response = await self._request(
            "POST",
            f"{GOOGLE_API_URL}/models/{self.model}:predictLongRunning",
            headers=self._headers(),
            json={"instances": [instance], "parameters": parameters},
        )

        operation_name = response.json().get("name")
        if not operation_name:
            return GenerationResult.failed(
                Failure(kind=FailureKind.TRANSIENT, message="No operation name in response", provider=self.name)
            )

        logger.info(f"[VEO] Operation started: {operation_name}")
        return GenerationResult.pending(
            OperationHandle(operation_id=operation_name, provider=self.name, kind=MediaKind.VIDEO)
        )

    async def poll(self, operation: OperationHandle) -> GenerationResult:
        response = await self._request(
            "GET",
            f"{GOOGLE_API_URL}/{operation.operation_id}",
            headers=self._headers(),
        )
        data = response.json()

        if not data.get("done"):
            return GenerationResult.pending(operation)

        error = data.get("error")
        if error:
            code = error.get("code")
            kind = FailureKind.TRANSIENT if code in TRANSIENT_RPC_CODES else FailureKind.PERMANENT
            return GenerationResult.failed(
                Failure(kind=kind, message=error.get("message", "Video generation failed"), provider=self.name)
            )

        video_response = data.get("response", {}).get("generateVideoResponse", {})
        samples = video_response.get("generatedSamples") or []
        if not samples:
            reasons = video_response.get("raiMediaFilteredReasons")
            if reasons:
                return GenerationResult.failed(
                    Failure(kind=FailureKind.PERMANENT, message=f"Content filtered: {reasons[0]}", provider=self.name)
                )
            return GenerationResult.failed(
                Failure(
                    kind=FailureKind.TRANSIENT,
                    message="Video generation completed but no video was returned",
                    provider=self.name,
                )
            )

        video = samples[0].get("video", {})
        if video.get("bytesBase64Encoded"):
            payload = base64.b64decode(video["bytesBase64Encoded"])
        else:
            uri = video.get("uri")
            if not uri:
                return GenerationResult.failed(
                    Failure(kind=FailureKind.TRANSIENT, message="Video sample has no uri", provider=self.name)
                )
            logger.info(f"[VEO] Downloading video for {operation.operation_id}")
            download = await self._request("GET", uri, headers=self._headers())
            payload = download.content

        return GenerationResult.completed(
            Artifact(kind=MediaKind.VIDEO, data=payload, content_type=video.get("mimeType", "video/mp4"))
        )
