"""FastAPI application entry point."""

import uvicorn
from fastapi import FastAPI

from tunebridge import __version__
from tunebridge.api.exception_handlers import register_exception_handlers
from tunebridge.api.routers import api_router, health
from tunebridge.config import Settings, get_settings
from tunebridge.infrastructure.lifecycle import lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use instead of get_settings() (tests pass their own)
    """
    app = FastAPI(
        title="tunebridge",
        description="Export Spotify playlists into a Plex music library",
        version=__version__,
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "tunebridge.main:app",
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )
