"""Spotify API models."""

from pydantic import BaseModel, Field


class CloneLikedSongsRequest(BaseModel):
    name: str | None = Field(default=None, max_length=100, description="Playlist name override")


class CloneLikedSongsResponse(BaseModel):
    playlist_id: str
    added: int
