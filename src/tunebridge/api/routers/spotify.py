"""Spotify endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from tunebridge.api.dependencies import get_liked_songs_service, get_spotify_token
from tunebridge.api.schemas import CloneLikedSongsRequest, CloneLikedSongsResponse
from tunebridge.application.services.liked_songs_service import LikedSongsCloneService

router = APIRouter(prefix="/spotify", tags=["Spotify"])


@router.post(
    "/liked/clone",
    status_code=status.HTTP_201_CREATED,
    response_model=CloneLikedSongsResponse,
)
async def clone_liked_songs(
    spotify_token: Annotated[str, Depends(get_spotify_token)],
    service: Annotated[LikedSongsCloneService, Depends(get_liked_songs_service)],
    body: CloneLikedSongsRequest | None = None,
) -> CloneLikedSongsResponse:
    """Copy the user's liked songs into a new private Spotify playlist."""
    playlist_id, added = await service.clone(spotify_token, name=body.name if body else None)
    return CloneLikedSongsResponse(playlist_id=playlist_id, added=added)
