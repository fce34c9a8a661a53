"""API router initialization."""

# Hey future me, this is the aggregator that main.py mounts under /api. Each
# router file carries its own prefix, so endpoints end up as /api/plex/export/...,
# /api/plex/missing, /api/spotify/liked/clone. The health router is mounted at
# the root by main.py, not here.

from fastapi import APIRouter

from tunebridge.api.routers import health, missing_cache, plex_export, plex_playlists, spotify

api_router = APIRouter()

api_router.include_router(plex_export.router)
api_router.include_router(plex_playlists.router)
api_router.include_router(missing_cache.router)
api_router.include_router(spotify.router)

__all__ = [
    "api_router",
    "health",
    "missing_cache",
    "plex_export",
    "plex_playlists",
    "spotify",
]
