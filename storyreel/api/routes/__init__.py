"""
API Routes.
"""
from .health import router as health_router
from .stories import router as stories_router
from .media import router as media_router

__all__ = [
    "health_router",
    "stories_router",
    "media_router",
]
