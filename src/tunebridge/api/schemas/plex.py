"""Plex export API models."""

from datetime import datetime

from pydantic import BaseModel, Field


class PlaylistResponse(BaseModel):
    id: str
    title: str


class PlaylistItemResponse(BaseModel):
    title: str
    artist: str
    rating_key: str | None = None


class RenamePlaylistRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="New playlist title")


class ExportJobAccepted(BaseModel):
    job_id: str


class MissingCacheEntryResponse(BaseModel):
    """One playlist's known-missing tracks."""

    playlist_name: str
    items: list[str]
    count: int
    created: datetime
    updated: datetime


class MissingCacheSnapshot(BaseModel):
    server_id: str
    entries: list[MissingCacheEntryResponse] = Field(default_factory=list)


class ExportSummaryResponse(BaseModel):
    exported_name: str
    added: int
    missing: list[str]
    failed: int
    total: int


class ExportJobStatus(BaseModel):
    """State and totals of a running or recently finished export job."""

    job_id: str
    state: str
    running: bool
    target_playlist_name: str | None = None
    added: int = 0
    missing: int = 0
    failed: int = 0
    total: int = 0
    error_message: str | None = None
    created_at: datetime
    playlists: list[ExportSummaryResponse] = Field(default_factory=list)
