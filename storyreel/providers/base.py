"""
Base classes for generative back-ends.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

import httpx

from ..pipeline.enums import MediaKind
from ..pipeline.models import GenerationOptions, GenerationResult, OperationHandle
from .exceptions import (
    ValidationFailed,
    PermanentProviderError,
    TransientProviderError,
    error_for_status,
    parse_retry_after,
)


class MediaGenerator(ABC):
    """
    One media capability (image, audio or video) backed by one service.

    generate() either finishes synchronously (completed), hands back an
    operation handle to poll (pending), or reports a failure. Transport
    and HTTP errors are raised as ProviderError subclasses.
    """

    kind: MediaKind
    supports_polling: bool = False

    def __init__(self, max_prompt_length: int = 2000, max_duration_seconds: int = 60):
        self.max_prompt_length = max_prompt_length
        self.max_duration_seconds = max_duration_seconds

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available."""
        pass

    @abstractmethod
    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        pass

    async def poll(self, operation: OperationHandle) -> GenerationResult:
        raise PermanentProviderError(self.name, "Polling is not supported")

    def validate_request(self, prompt: str, options: GenerationOptions) -> None:
        """Reject requests the back-end would refuse anyway."""
        if not prompt or not prompt.strip():
            raise ValidationFailed(self.name, "Prompt is required")

        if len(prompt) > self.max_prompt_length:
            raise ValidationFailed(
                self.name,
                f"Prompt must be at most {self.max_prompt_length} characters (got {len(prompt)})",
            )

        duration = options.duration_seconds
        if duration is not None and (duration <= 0 or duration > self.max_duration_seconds):
            raise ValidationFailed(
                self.name,
                f"Duration must be between 1 and {self.max_duration_seconds} seconds",
            )

    async def close(self) -> None:
        pass


class TextProvider(ABC):
    """Text completion capability used for style extraction and segmentation."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        task: str = "generic",
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Complete a prompt.

        Args:
            prompt: Full prompt text
            task: What the prompt asks for ('style', 'segments', ...)
            context: Structured inputs behind the prompt, for back-ends
                that do not read prompts

        Returns:
            Raw response text
        """
        pass

    async def close(self) -> None:
        pass


class HTTPProviderMixin:
    """Shared httpx plumbing for remote back-ends."""

    client: httpx.AsyncClient

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientProviderError(self.name, f"Request timed out: {e}")
        except httpx.TransportError as e:
            raise TransientProviderError(self.name, f"Network error: {e}")

        if response.status_code >= 400:
            raise error_for_status(
                self.name,
                response.status_code,
                _error_message(response),
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        return response

    async def close(self) -> None:
        await self.client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500]

    if isinstance(data, dict):
        error = data.get("error") or data.get("detail")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("status") or error)
        if error:
            return str(error)
    return response.text[:500]
