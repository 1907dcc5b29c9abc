"""
FastAPI Application - Story Reel API.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import config
from .exceptions import APIError, api_error_handler, generic_exception_handler
from .routes import health_router, stories_router, media_router

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    from ..pipeline.orchestrator import get_orchestrator

    logger.info("=" * 60)
    logger.info("Starting Story Reel API...")
    logger.info("=" * 60)

    config.log_status()

    orchestrator = get_orchestrator()
    if config.resume_on_startup:
        restarted = orchestrator.recover()
        logger.info(f"[RESUME] {restarted} unfinished stories restarted")

    logger.info("Server ready! Upload stories at /api/upload")

    yield

    logger.info("Shutting down Story Reel API...")
    await orchestrator.close()


def create_app(debug: bool = False) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Story Reel API",
        description="Turns written stories into illustrated, narrated video segments",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length", "Content-Disposition"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(stories_router)
    app.include_router(media_router)

    return app


app = create_app(debug=config.debug)
