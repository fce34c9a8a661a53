"""Plex playlist management endpoints (list, items, rename, delete)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from tunebridge.api.dependencies import get_plex_client, get_plex_token
from tunebridge.api.schemas import PlaylistItemResponse, PlaylistResponse, RenamePlaylistRequest
from tunebridge.infrastructure.integrations.plex_client import PlexClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plex/playlists", tags=["Plex Playlists"])


# Hey future me - every endpoint here discovers the server first. That's one extra
# plex.tv round trip per request, but tokens are per request too and a user can
# have their server move between calls. Don't cache base_url across requests.
@router.get("", response_model=list[PlaylistResponse])
async def list_playlists(
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
) -> list[PlaylistResponse]:
    """List audio playlists on the user's Plex server."""
    base_url, _ = await plex.discover_server(plex_token)
    playlists = await plex.list_playlists(base_url, plex_token)
    return [PlaylistResponse(id=p.id, title=p.title) for p in playlists]


@router.get("/{playlist_id}/items", response_model=list[PlaylistItemResponse])
async def get_playlist_items(
    playlist_id: str,
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
) -> list[PlaylistItemResponse]:
    """List the tracks of one Plex playlist."""
    base_url, _ = await plex.discover_server(plex_token)
    items = await plex.get_playlist_items(base_url, playlist_id, plex_token)
    return [
        PlaylistItemResponse(title=i.title, artist=i.artist, rating_key=i.rating_key)
        for i in items
    ]


@router.put("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def rename_playlist(
    playlist_id: str,
    body: RenamePlaylistRequest,
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
) -> None:
    """Rename a Plex playlist."""
    base_url, _ = await plex.discover_server(plex_token)
    await plex.rename_playlist(base_url, playlist_id, body.title.strip(), plex_token)


@router.delete("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_playlist(
    playlist_id: str,
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
) -> None:
    """Delete a Plex playlist."""
    base_url, _ = await plex.discover_server(plex_token)
    await plex.delete_playlist(base_url, playlist_id, plex_token)
