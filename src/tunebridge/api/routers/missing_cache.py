"""Missing-track cache endpoints.

The cache is keyed per Plex server, so every endpoint resolves the caller's
server identity from their token first.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response

from tunebridge.api.dependencies import get_missing_cache, get_plex_client, get_plex_token
from tunebridge.api.schemas import MissingCacheEntryResponse, MissingCacheSnapshot
from tunebridge.application.services.missing_report_service import (
    build_missing_csv,
    csv_filename,
)
from tunebridge.domain.exceptions import EntityNotFoundException
from tunebridge.infrastructure.integrations.plex_client import PlexClient
from tunebridge.infrastructure.persistence.missing_cache_store import MissingCacheStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plex/missing", tags=["Missing Tracks"])


@router.get("", response_model=MissingCacheSnapshot)
async def get_missing_snapshot(
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
    cache: Annotated[MissingCacheStore, Depends(get_missing_cache)],
) -> MissingCacheSnapshot:
    """All known-missing lists for the caller's Plex server."""
    _, server_id = await plex.discover_server(plex_token)
    entries = cache.load(server_id)
    return MissingCacheSnapshot(
        server_id=server_id,
        entries=[
            MissingCacheEntryResponse(
                playlist_name=name,
                items=entry.items,
                count=len(entry.items),
                created=entry.created,
                updated=entry.updated,
            )
            for name, entry in sorted(entries.items(), key=lambda kv: kv[0].casefold())
        ],
    )


# Hey future me - downloading the CSV CONSUMES the entry. The user took the list
# to go buy/rip those tracks; the next export re-checks everything against Plex.
@router.get("/{playlist_name}.csv")
async def download_missing_csv(
    playlist_name: str,
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
    cache: Annotated[MissingCacheStore, Depends(get_missing_cache)],
) -> Response:
    """Missing tracks of one playlist as a ';'-separated CSV file."""
    _, server_id = await plex.discover_server(plex_token)
    entry = cache.get_entry(server_id, playlist_name)
    if entry is None or not entry.items:
        raise EntityNotFoundException("Missing-track list", playlist_name)

    content = build_missing_csv(playlist_name, entry.items)
    cache.remove_entry(server_id, playlist_name)
    logger.info(
        "Missing list for '%s' downloaded (%d entries), entry removed",
        playlist_name,
        len(entry.items),
    )
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(playlist_name)}"'},
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_missing_cache(
    plex_token: Annotated[str, Depends(get_plex_token)],
    plex: Annotated[PlexClient, Depends(get_plex_client)],
    cache: Annotated[MissingCacheStore, Depends(get_missing_cache)],
) -> None:
    """Forget every missing list of the caller's Plex server."""
    _, server_id = await plex.discover_server(plex_token)
    cache.clear(server_id)
    logger.info("Missing cache cleared for server %s", server_id)
