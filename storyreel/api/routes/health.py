"""
Health check endpoints.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, status

from ... import __version__
from ...config import AppConfig
from ...pipeline.orchestrator import BACKGROUND_TASKS
from ..dependencies import get_app_config
from ..schemas import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
)
async def health_check(app_config: AppConfig = Depends(get_app_config)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service="storyreel",
        version=__version__,
        storage=app_config.storage_backend,
        active_runs=len(BACKGROUND_TASKS),
        timestamp=datetime.utcnow(),
    )


@router.get(
    "/health/config",
    status_code=status.HTTP_200_OK,
    summary="Configuration Status",
    description="Check API key configuration status (does not expose actual keys).",
)
async def config_status(app_config: AppConfig = Depends(get_app_config)) -> dict:
    """
    Which back ends are configured, without exposing keys.
    """
    status_info = app_config.validate()
    google = status_info["ai"]["google_configured"]
    elevenlabs = status_info["ai"]["elevenlabs_configured"]

    notes = []
    if not google:
        notes.append("Using local generators for text, image and video (set GOOGLE_API_KEY)")
    if not elevenlabs:
        notes.append("Using local audio generator (set ELEVENLABS_API_KEY)")

    return {
        "status": "configured" if google and elevenlabs else "partial",
        "apis": {
            "google": "configured" if google else "missing",
            "elevenlabs": "configured" if elevenlabs else "missing",
        },
        "providers": status_info["providers"],
        "pipeline": status_info["pipeline"],
        "storage": status_info["database"]["backend"],
        "notes": notes,
    }
