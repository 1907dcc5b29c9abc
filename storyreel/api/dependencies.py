"""
Shared dependencies for API routes.

Routes take these through Depends() so tests can swap them with
app.dependency_overrides.
"""
from ..config import AppConfig, config
from ..persistence.media_store import MediaStore, get_media_store
from ..persistence.stories_repo import StoriesRepository, get_stories_repository
from ..pipeline.orchestrator import StoryOrchestrator, get_orchestrator


def get_app_config() -> AppConfig:
    return config


def get_repository() -> StoriesRepository:
    return get_stories_repository()


def get_store() -> MediaStore:
    return get_media_store()


def get_pipeline() -> StoryOrchestrator:
    return get_orchestrator()
