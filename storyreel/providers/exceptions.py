"""
Provider exceptions.
"""
from typing import Optional

TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
QUOTA_MARKERS = ("quota", "billing", "balance", "exceeded your current")


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(
        self,
        provider: str,
        message: str,
        transient: bool = False,
        retry_after: Optional[float] = None,
    ):
        self.provider = provider
        self.message = message
        self.transient = transient
        self.retry_after = retry_after
        super().__init__(f"[{provider}] {message}")


class TransientProviderError(ProviderError):
    """Temporary failure (rate limit, 5xx, network). Safe to retry."""

    def __init__(self, provider: str, message: str, retry_after: Optional[float] = None):
        super().__init__(provider, message, transient=True, retry_after=retry_after)


class PermanentProviderError(ProviderError):
    """Failure that will not go away on retry (bad request, auth, content policy)."""

    def __init__(self, provider: str, message: str):
        super().__init__(provider, message, transient=False)


class ProviderUnavailable(PermanentProviderError):
    """Provider is not available (missing API key, etc.)."""

    def __init__(self, provider: str, reason: str = "unavailable"):
        super().__init__(provider, f"Provider unavailable: {reason}")
        self.reason = reason


class ValidationFailed(PermanentProviderError):
    """Request rejected before dispatch (empty prompt, bad duration)."""


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def error_for_status(
    provider: str,
    status_code: int,
    message: str,
    retry_after: Optional[float] = None,
) -> ProviderError:
    """
    Map an HTTP error status to a provider exception.

    408/425/429/5xx are transient; other 4xx are permanent. A quota or
    billing message without Retry-After is permanent.
    """
    text = f"HTTP {status_code}: {message}"
    lowered = message.lower()

    if any(marker in lowered for marker in QUOTA_MARKERS) and retry_after is None:
        return PermanentProviderError(provider, f"Quota exhausted - {text}")

    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return TransientProviderError(provider, text, retry_after=retry_after)

    return PermanentProviderError(provider, text)
