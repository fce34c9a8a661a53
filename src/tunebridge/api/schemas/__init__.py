"""Request/response models for the HTTP API."""

from tunebridge.api.schemas.plex import (
    ExportJobAccepted,
    ExportJobStatus,
    ExportSummaryResponse,
    MissingCacheEntryResponse,
    MissingCacheSnapshot,
    PlaylistItemResponse,
    PlaylistResponse,
    RenamePlaylistRequest,
)
from tunebridge.api.schemas.spotify import CloneLikedSongsRequest, CloneLikedSongsResponse

__all__ = [
    "CloneLikedSongsRequest",
    "CloneLikedSongsResponse",
    "ExportJobAccepted",
    "ExportJobStatus",
    "ExportSummaryResponse",
    "MissingCacheEntryResponse",
    "MissingCacheSnapshot",
    "PlaylistItemResponse",
    "PlaylistResponse",
    "RenamePlaylistRequest",
]
