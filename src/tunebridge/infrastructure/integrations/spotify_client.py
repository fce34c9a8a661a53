"""Spotify Web API client (the export source).

Only the calls the sync engine needs: current user, playlists, playlist tracks,
saved tracks, and creating/filling a playlist. OAuth is NOT done here - the
caller hands us a ready access token on every call.
"""

import asyncio
import logging
from typing import Any

import httpx

from tunebridge.config.settings import SpotifySettings
from tunebridge.domain.entities import SourcePlaylist, TrackRef
from tunebridge.domain.exceptions import RateLimitExceededError
from tunebridge.domain.ports import ISourceMusicClient
from tunebridge.infrastructure.integrations.http_pool import HttpClientPool
from tunebridge.infrastructure.rate_limiter import get_spotify_limiter

logger = logging.getLogger(__name__)


def _track_ref(track: dict[str, Any] | None) -> TrackRef | None:
    """Map a Spotify track object to a TrackRef (first artist wins)."""
    if not track or track.get("type", "track") != "track" or not track.get("name"):
        return None
    artists = track.get("artists") or []
    artist = (artists[0].get("name") if artists else "") or ""
    album = (track.get("album") or {}).get("name")
    return TrackRef(title=track["name"], artist=artist, album=album)


class SpotifyClient(ISourceMusicClient):
    """HTTP client for Spotify Web API operations."""

    def __init__(
        self, settings: SpotifySettings, client: httpx.AsyncClient | None = None
    ) -> None:
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await HttpClientPool.get_client(timeout=self.settings.timeout)

    # Hey future me - CENTRALIZED API REQUEST with rate limiting! Every Spotify call
    # goes through here: token bucket before the call, and on 429 we sleep for
    # Retry-After (or the adaptive backoff) and try again, max_retries times.
    async def _api_request(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        """Make rate-limited API request with automatic retry on 429.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL or path relative to the API base
            access_token: OAuth access token
            params: Query parameters
            json: JSON body
            max_retries: Max retries on 429 (default 3)

        Returns:
            httpx.Response (status already checked for 429 only)

        Raises:
            RateLimitExceededError: Still 429 after max_retries
        """
        client = await self._get_client()
        rate_limiter = get_spotify_limiter()
        if not url.startswith("http"):
            url = f"{self.settings.api_base_url}{url}"
        headers = {"Authorization": f"Bearer {access_token}"}

        for attempt in range(max_retries + 1):
            await rate_limiter.acquire()
            response = await client.request(
                method, url, params=params, json=json, headers=headers
            )

            if response.status_code != 429:
                rate_limiter.reset_backoff()
                return response

            retry_after_str = response.headers.get("Retry-After")
            retry_after = int(retry_after_str) if retry_after_str else None
            if attempt >= max_retries:
                raise RateLimitExceededError(
                    f"Spotify API rate limited (429) after {max_retries} retries. "
                    f"Retry-After: {retry_after or 'not provided'} seconds."
                )

            wait_time = await rate_limiter.handle_rate_limit_response(retry_after)
            logger.warning(
                "Spotify 429 (attempt %d/%d): waited %.1fs, retrying %s",
                attempt + 1,
                max_retries,
                wait_time,
                url,
            )

        raise RateLimitExceededError("Spotify API rate limited")  # pragma: no cover

    async def _get_json(
        self, url: str, access_token: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        response = await self._api_request("GET", url, access_token, params=params)
        response.raise_for_status()
        return response.json()

    # Listen up - Spotify paging hands us a full "next" URL (offset already baked in),
    # so we just follow it until it's null. The fixed pause between pages keeps
    # "export all" on big libraries clear of the rate limit.
    async def _fetch_all_items(
        self, url: str, access_token: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        next_params = params
        while next_url:
            page = await self._get_json(next_url, access_token, params=next_params)
            items.extend(i for i in page.get("items") or [] if i)
            next_url = page.get("next")
            next_params = None
            if next_url:
                await asyncio.sleep(self.settings.api_delay)
        return items

    async def get_current_user(self, access_token: str) -> dict[str, Any]:
        return await self._get_json("/me", access_token)

    async def get_user_playlists(self, access_token: str) -> list[SourcePlaylist]:
        items = await self._fetch_all_items(
            "/me/playlists", access_token, params={"limit": self.settings.page_size}
        )
        return [
            SourcePlaylist(id=item["id"], name=item.get("name") or "")
            for item in items
            if item.get("id")
        ]

    async def get_playlist(self, playlist_id: str, access_token: str) -> SourcePlaylist:
        data = await self._get_json(
            f"/playlists/{playlist_id}", access_token, params={"fields": "id,name"}
        )
        return SourcePlaylist(id=data.get("id") or playlist_id, name=data.get("name") or "")

    async def get_playlist_tracks(
        self, playlist_id: str, access_token: str
    ) -> list[TrackRef]:
        items = await self._fetch_all_items(
            f"/playlists/{playlist_id}/tracks",
            access_token,
            params={"limit": 100},
        )
        refs = [_track_ref(item.get("track")) for item in items]
        return [ref for ref in refs if ref is not None]

    async def _saved_track_items(self, access_token: str) -> list[dict[str, Any]]:
        return await self._fetch_all_items(
            "/me/tracks", access_token, params={"limit": self.settings.page_size}
        )

    async def get_saved_tracks(self, access_token: str) -> list[TrackRef]:
        items = await self._saved_track_items(access_token)
        refs = [_track_ref(item.get("track")) for item in items]
        return [ref for ref in refs if ref is not None]

    async def get_saved_track_uris(self, access_token: str) -> list[str]:
        items = await self._saved_track_items(access_token)
        return [
            item["track"]["uri"]
            for item in items
            if item.get("track") and item["track"].get("uri")
        ]

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        access_token: str,
        description: str = "",
        public: bool = False,
    ) -> str:
        response = await self._api_request(
            "POST",
            f"/users/{user_id}/playlists",
            access_token,
            json={"name": name, "description": description, "public": public},
        )
        response.raise_for_status()
        playlist_id = response.json()["id"]
        logger.info("Created Spotify playlist '%s' (%s)", name, playlist_id)
        return playlist_id

    async def add_tracks_to_playlist(
        self, playlist_id: str, track_uris: list[str], access_token: str
    ) -> int:
        """Append tracks in chunks (Spotify accepts at most 100 per call)."""
        chunk_size = self.settings.add_chunk_size
        sent = 0
        for start in range(0, len(track_uris), chunk_size):
            if start:
                await asyncio.sleep(self.settings.api_delay)
            chunk = track_uris[start : start + chunk_size]
            response = await self._api_request(
                "POST",
                f"/playlists/{playlist_id}/tracks",
                access_token,
                json={"uris": chunk},
            )
            response.raise_for_status()
            sent += len(chunk)
        return sent
