"""Dependency injection for API endpoints.

Hey future me - everything long-lived (clients, cache store, services, job
runner) is built once in lifecycle.py and parked on app.state. These getters
only hand it out; if something is missing, startup went wrong and we answer
503 instead of crashing with AttributeError.

Credentials are NOT stored anywhere server-side. Every request brings its own
tokens in headers and they are passed down explicitly.
"""

from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request

from tunebridge.application.services.liked_songs_service import LikedSongsCloneService
from tunebridge.application.services.playlist_export_service import (
    PlaylistExportService,
    SyncCredentials,
)
from tunebridge.application.services.progress_channel import ProgressChannel
from tunebridge.application.workers.export_job_runner import ExportJobRunner
from tunebridge.config import Settings
from tunebridge.domain.exceptions import AuthenticationError
from tunebridge.infrastructure.integrations.plex_client import PlexClient
from tunebridge.infrastructure.persistence.missing_cache_store import MissingCacheStore


def _from_state(request: Request, name: str) -> Any:
    if not hasattr(request.app.state, name):
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return getattr(request.app.state, name)


def get_app_settings(request: Request) -> Settings:
    return _from_state(request, "settings")


def get_plex_client(request: Request) -> PlexClient:
    return _from_state(request, "plex_client")


def get_missing_cache(request: Request) -> MissingCacheStore:
    return _from_state(request, "missing_cache")


def get_progress_channel(request: Request) -> ProgressChannel:
    return _from_state(request, "progress_channel")


def get_export_service(request: Request) -> PlaylistExportService:
    return _from_state(request, "export_service")


def get_export_runner(request: Request) -> ExportJobRunner:
    return _from_state(request, "export_runner")


def get_liked_songs_service(request: Request) -> LikedSongsCloneService:
    return _from_state(request, "liked_songs_service")


# Hey future me - a missing header is an AuthenticationError (→ 401 via the
# exception handlers), not FastAPI's default 422 for missing parameters.
def get_plex_token(x_plex_token: Annotated[str | None, Header()] = None) -> str:
    if not x_plex_token or not x_plex_token.strip():
        raise AuthenticationError("Missing X-Plex-Token header")
    return x_plex_token.strip()


def get_spotify_token(x_spotify_token: Annotated[str | None, Header()] = None) -> str:
    if not x_spotify_token or not x_spotify_token.strip():
        raise AuthenticationError("Missing X-Spotify-Token header")
    return x_spotify_token.strip()


def get_sync_credentials(
    spotify_token: Annotated[str, Depends(get_spotify_token)],
    plex_token: Annotated[str, Depends(get_plex_token)],
) -> SyncCredentials:
    return SyncCredentials(spotify_token=spotify_token, plex_token=plex_token)
