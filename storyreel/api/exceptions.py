"""
API Exceptions and Error Handlers.
"""
import logging
from typing import Optional, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str
    detail: Optional[str] = None
    code: str
    status_code: int


class APIError(Exception):
    """Base API exception."""

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        self.headers = headers
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            detail=self.detail,
            code=self.code,
            status_code=self.status_code,
        )


class ValidationError(APIError):
    """400 - Bad Request / Validation Error."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class NotFoundError(APIError):
    """404 - Resource Not Found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class StoryNotFound(NotFoundError):
    """404 - Story Not Found."""

    def __init__(self, story_id: str):
        super().__init__(resource="Story", resource_id=story_id)


class ConflictError(APIError):
    """409 - Request conflicts with work in progress."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class PayloadTooLargeError(APIError):
    """413 - Upload exceeds the size limit."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="PAYLOAD_TOO_LARGE",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )


class RangeNotSatisfiableError(APIError):
    """416 - Requested byte range cannot be served."""

    def __init__(self, size: int):
        super().__init__(
            message="Requested range not satisfiable",
            code="RANGE_NOT_SATISFIABLE",
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            headers={"Content-Range": f"bytes */{size}"},
        )


class InternalError(APIError):
    """500 - Internal Server Error."""

    def __init__(self, message: str = "Internal server error", detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = InternalError(detail=str(exc) if request.app.debug else None)
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response().model_dump(),
    )
