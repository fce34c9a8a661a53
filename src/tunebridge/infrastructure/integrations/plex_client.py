"""Plex Media Server HTTP client.

Hey future me - this wraps the bits of the Plex API the sync engine needs:
server discovery via plex.tv, music section lookup, three flavours of track
search, and playlist create/add/rename/delete. Responses are XML (Plex's default
representation) and parsed with ElementTree.

AUTH: the token goes into the query string as X-Plex-Token, and EVERY request
carries the static X-Plex-* identification headers. Plex rejects or rate-limits
clients that don't identify themselves.

ERROR POLICY:
- discovery/section lookup raise the Plex*Error domain exceptions (fatal for the job)
- searches let httpx/ParseError propagate, the matcher decides what "not found" means
- add_items reports failure as False for non-2xx/unconfirmed responses
- CRUD passthroughs (delete/rename/items) raise httpx.HTTPStatusError
"""

import logging
import unicodedata
import xml.etree.ElementTree as ET
from typing import Any
from urllib.parse import urlparse

import httpx

from tunebridge.config.settings import PlexSettings
from tunebridge.domain.entities import (
    PlexCandidate,
    PlexPlaylistItem,
    SyncTargetPlaylist,
)
from tunebridge.domain.exceptions import (
    ExternalServiceError,
    NoConnectionFoundError,
    NoMusicSectionError,
    NoServerFoundError,
    ValidationError,
)
from tunebridge.domain.ports import ITargetLibraryClient
from tunebridge.domain.value_objects.naming import export_playlist_title
from tunebridge.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)

# Plex metadata type 10 = track
TRACK_TYPE = "10"


def _clean_title(raw: str) -> str:
    """Drop control characters and emoji variation selectors, then trim."""
    text = "".join(ch for ch in raw if unicodedata.category(ch) != "Cc")
    return text.replace("\ufe0f", "").strip()


class PlexClient(ITargetLibraryClient):
    """HTTP client for the Plex Media Server API."""

    SYSTEM_PLAYLISTS = frozenset({"all music", "recently added", "recently played"})
    PLACEHOLDER_ARTISTS = frozenset({"various artists"})

    # Hey future me, the optional client is for tests (httpx.MockTransport). In the
    # app we always borrow the pooled client, never create our own.
    def __init__(
        self, settings: PlexSettings, client: httpx.AsyncClient | None = None
    ) -> None:
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await HttpClientPool.get_client(timeout=self.settings.timeout)

    def _headers(self, accept: str = "application/xml") -> dict[str, str]:
        return {
            "Accept": accept,
            "X-Plex-Client-Identifier": self.settings.client_identifier,
            "X-Plex-Product": self.settings.product,
            "X-Plex-Version": self.settings.version,
            "X-Plex-Platform": self.settings.platform,
            "X-Plex-Device": self.settings.device,
            "X-Plex-Device-Name": self.settings.device_name,
        }

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        params: dict[str, Any] | None = None,
        accept: str = "application/xml",
    ) -> httpx.Response:
        client = await self._get_client()
        query = dict(params or {})
        query["X-Plex-Token"] = token
        return await client.request(
            method, url, params=query, headers=self._headers(accept)
        )

    async def _get_xml(
        self, url: str, token: str, params: dict[str, Any] | None = None
    ) -> ET.Element:
        """GET an XML document; raises httpx.HTTPStatusError or ET.ParseError."""
        response = await self._request("GET", url, token, params)
        response.raise_for_status()
        return ET.fromstring(response.content)

    # =========================================================================
    # Discovery
    # =========================================================================

    async def discover_server(self, token: str) -> tuple[str, str]:
        """Resolve the first server of the account.

        Returns:
            (base_url, server_id). server_id is never empty, "unknown" at worst.

        Raises:
            NoServerFoundError: No device provides "server"
            NoConnectionFoundError: The server lists no connections
        """
        root = await self._get_xml(
            self.settings.discovery_url, token, params={"includeHttps": "1"}
        )

        device = next(
            (
                d
                for d in root.iter("Device")
                if "server" in (d.get("provides") or "").split(",")
            ),
            None,
        )
        if device is None:
            raise NoServerFoundError()

        connections = list(device.iter("Connection"))
        if not connections:
            raise NoConnectionFoundError()

        # Remote HTTPS first - works from anywhere and has a valid plex.direct cert
        preferred = next(
            (
                c
                for c in connections
                if c.get("local") == "0" and c.get("protocol") == "https"
            ),
            connections[0],
        )
        base_url = (preferred.get("uri") or "").rstrip("/")
        if not base_url:
            raise NoConnectionFoundError("Plex connection entry has no URI")

        server_id = (
            device.get("clientIdentifier")
            or device.get("machineIdentifier")
            or await self._probe_server_id(base_url, token)
        )
        logger.info(
            "Discovered Plex server %s at %s", device.get("name") or "?", base_url
        )
        return base_url, server_id

    async def _probe_server_id(self, base_url: str, token: str) -> str:
        """Best-effort machine identifier: root, /identity, host label, "unknown"."""
        for path in ("/", "/identity"):
            try:
                root = await self._get_xml(f"{base_url}{path}", token)
            except (httpx.HTTPError, ET.ParseError) as e:
                logger.debug("Plex identity probe %s failed: %s", path, e)
                continue
            machine_id = root.get("machineIdentifier")
            if machine_id:
                return machine_id

        host = urlparse(base_url).hostname or ""
        first_label = host.split(".")[0]
        if len(first_label) > 10:
            return first_label

        logger.warning("Could not determine Plex machine identifier for %s", base_url)
        return "unknown"

    async def find_music_section(self, base_url: str, token: str) -> str:
        """Return the key of the first artist/audio library section.

        Raises:
            NoMusicSectionError: If the server has no music library
        """
        root = await self._get_xml(f"{base_url}/library/sections", token)
        for directory in root.iter("Directory"):
            if (directory.get("type") or "").lower() in ("artist", "audio"):
                key = directory.get("key")
                if key:
                    logger.debug("Plex music section key=%s", key)
                    return key
        raise NoMusicSectionError()

    # =========================================================================
    # Playlists
    # =========================================================================

    async def list_playlists(
        self, base_url: str, token: str
    ) -> list[SyncTargetPlaylist]:
        """List user audio playlists, system playlists and blank titles removed."""
        root = await self._get_xml(f"{base_url}/playlists/all", token)

        playlists: list[SyncTargetPlaylist] = []
        seen: set[tuple[str, str]] = set()
        for element in root.iter("Playlist"):
            if element.get("playlistType") != "audio":
                continue
            raw_title = element.get("title") or element.get("titleSort") or "<NoName>"
            title = _clean_title(raw_title)
            if not title or title.lower() in self.SYSTEM_PLAYLISTS:
                continue
            playlist_id = element.get("ratingKey") or ""
            if (title, playlist_id) in seen:
                continue
            seen.add((title, playlist_id))
            playlists.append(SyncTargetPlaylist(id=playlist_id, title=title))
        return playlists

    async def create_playlist(
        self, base_url: str, section_key: str, name: str, token: str
    ) -> str:
        """Create an empty audio playlist.

        Plex refuses to create a playlist without a seed item uri, so we anchor
        it on a dummy item of the music section.

        Raises:
            ExternalServiceError: If Plex returns no ratingKey
        """
        title = export_playlist_title(name)
        response = await self._request(
            "POST",
            f"{base_url}/playlists",
            token,
            params={
                "type": "audio",
                "title": title,
                "smart": "0",
                "uri": f"library://{section_key}/item/0",
            },
        )
        response.raise_for_status()
        root = ET.fromstring(response.content)
        playlist = next(root.iter("Playlist"), None)
        rating_key = playlist.get("ratingKey") if playlist is not None else None
        if not rating_key:
            raise ExternalServiceError(f"Plex did not return a playlist id for '{title}'")
        logger.info("Created Plex playlist '%s' (%s)", title, rating_key)
        return rating_key

    async def add_items(
        self,
        base_url: str,
        playlist_id: str,
        item_keys: list[str],
        server_id: str,
        token: str,
    ) -> bool:
        """Add one batch of library items in a single PUT.

        Raises:
            ValidationError: If server_id is empty (the uri would be invalid)
        """
        if not server_id:
            raise ValidationError("Plex machine identifier must not be empty")
        keys = [k for k in item_keys if k]
        if not keys:
            return False

        uri = (
            f"server://{server_id}/com.plexapp.plugins.library/library/metadata/"
            f"{','.join(keys)}"
        )
        response = await self._request(
            "PUT",
            f"{base_url}/playlists/{playlist_id}/items",
            token,
            params={"uri": uri},
            accept="application/json",
        )
        if not response.is_success:
            logger.warning(
                "Plex rejected %d items for playlist %s: HTTP %d",
                len(keys),
                playlist_id,
                response.status_code,
            )
            return False

        # Plex answers 200 even when nothing was added - only trust the counter
        body = response.text
        if "leafCountAdded" not in body and "size" not in body:
            logger.warning(
                "Plex response for playlist %s did not confirm added items", playlist_id
            )
            return False
        return True

    async def delete_playlist(self, base_url: str, playlist_id: str, token: str) -> None:
        response = await self._request("DELETE", f"{base_url}/playlists/{playlist_id}", token)
        response.raise_for_status()
        logger.info("Deleted Plex playlist %s", playlist_id)

    async def rename_playlist(
        self, base_url: str, playlist_id: str, title: str, token: str
    ) -> None:
        response = await self._request(
            "PUT", f"{base_url}/playlists/{playlist_id}", token, params={"title": title}
        )
        response.raise_for_status()
        logger.info("Renamed Plex playlist %s to '%s'", playlist_id, title)

    async def get_playlist_items(
        self, base_url: str, playlist_id: str, token: str
    ) -> list[PlexPlaylistItem]:
        root = await self._get_xml(f"{base_url}/playlists/{playlist_id}/items", token)
        return [
            PlexPlaylistItem(
                title=track.get("title") or "Untitled",
                artist=track.get("grandparentTitle") or "Unknown",
                rating_key=track.get("ratingKey"),
            )
            for track in root.iter("Track")
        ]

    # =========================================================================
    # Search
    # =========================================================================

    @staticmethod
    def _candidate(track: ET.Element, container: ET.Element) -> PlexCandidate:
        # Section/server come from the MediaContainer, track-level attrs win if set
        return PlexCandidate(
            rating_key=track.get("ratingKey") or "",
            title=track.get("title") or "",
            artist=track.get("grandparentTitle") or "",
            library_section=track.get("librarySectionID")
            or container.get("librarySectionID")
            or "",
            server_id=container.get("machineIdentifier") or "",
        )

    def _first_with_artist(
        self, root: ET.Element, artist: str
    ) -> PlexCandidate | None:
        wanted = artist.strip().casefold()
        for track in root.iter("Track"):
            if not track.get("ratingKey"):
                continue
            if (track.get("grandparentTitle") or "").strip().casefold() == wanted:
                return self._candidate(track, root)
        return None

    async def search_exact(
        self, base_url: str, section_key: str, title: str, artist: str, token: str
    ) -> PlexCandidate | None:
        """Server-side filtered title+artist search.

        The Plex filter is fuzzy-ish on its own, so the artist is re-checked
        here (case-insensitive equality on grandparentTitle).
        """
        root = await self._get_xml(
            f"{base_url}/library/sections/{section_key}/all",
            token,
            params={"type": TRACK_TYPE, "track.title": title, "artist": artist},
        )
        return self._first_with_artist(root, artist)

    async def search_fuzzy(
        self, base_url: str, section_key: str, query: str, token: str
    ) -> list[PlexCandidate]:
        """Free-text search inside the music section.

        Candidates without an artist or with the "Various Artists" placeholder
        are dropped - they'd match anything by title alone.
        """
        root = await self._get_xml(
            f"{base_url}/library/sections/{section_key}/search",
            token,
            params={"type": TRACK_TYPE, "query": query},
        )
        candidates: list[PlexCandidate] = []
        for track in root.iter("Track"):
            artist = (track.get("grandparentTitle") or "").strip()
            if not artist or artist.lower() in self.PLACEHOLDER_ARTISTS:
                continue
            if not track.get("ratingKey"):
                continue
            candidates.append(self._candidate(track, root))
        return candidates

    async def search_global(
        self, base_url: str, query: str, artist: str, token: str
    ) -> PlexCandidate | None:
        """Whole-server search, same artist-equality filter as search_exact."""
        root = await self._get_xml(
            f"{base_url}/search", token, params={"query": query, "type": TRACK_TYPE}
        )
        return self._first_with_artist(root, artist)
