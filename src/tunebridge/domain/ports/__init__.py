"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any

from tunebridge.domain.entities import (
    CacheEntry,
    PlexCandidate,
    PlexPlaylistItem,
    SourcePlaylist,
    SyncTargetPlaylist,
    TrackRef,
)


# Hey future me, ITargetLibraryClient is the PORT for the Plex HTTP API! The matcher,
# exporter and orchestrator only know this interface, tests hand them an AsyncMock
# with spec=ITargetLibraryClient. Every method takes the token explicitly - there is
# no session state in the client.
class ITargetLibraryClient(ABC):
    """Port for the target media server (Plex)."""

    @abstractmethod
    async def discover_server(self, token: str) -> tuple[str, str]:
        """Resolve (base_url, server_id) of the account's first server."""
        pass

    @abstractmethod
    async def find_music_section(self, base_url: str, token: str) -> str:
        """Return the key of the first music library section."""
        pass

    @abstractmethod
    async def list_playlists(
        self, base_url: str, token: str
    ) -> list[SyncTargetPlaylist]:
        """List user audio playlists (system playlists excluded)."""
        pass

    @abstractmethod
    async def search_exact(
        self, base_url: str, section_key: str, title: str, artist: str, token: str
    ) -> PlexCandidate | None:
        """Filtered section search; only returns a candidate with matching artist."""
        pass

    @abstractmethod
    async def search_fuzzy(
        self, base_url: str, section_key: str, query: str, token: str
    ) -> list[PlexCandidate]:
        """Free-text section search (placeholder artists excluded)."""
        pass

    @abstractmethod
    async def search_global(
        self, base_url: str, query: str, artist: str, token: str
    ) -> PlexCandidate | None:
        """Whole-server search; only returns a candidate with matching artist."""
        pass

    @abstractmethod
    async def create_playlist(
        self, base_url: str, section_key: str, name: str, token: str
    ) -> str:
        """Create an empty audio playlist and return its ratingKey."""
        pass

    @abstractmethod
    async def add_items(
        self,
        base_url: str,
        playlist_id: str,
        item_keys: list[str],
        server_id: str,
        token: str,
    ) -> bool:
        """Add one batch of items in a single request. True if Plex confirmed."""
        pass

    @abstractmethod
    async def delete_playlist(self, base_url: str, playlist_id: str, token: str) -> None:
        pass

    @abstractmethod
    async def rename_playlist(
        self, base_url: str, playlist_id: str, title: str, token: str
    ) -> None:
        pass

    @abstractmethod
    async def get_playlist_items(
        self, base_url: str, playlist_id: str, token: str
    ) -> list[PlexPlaylistItem]:
        pass


class ISourceMusicClient(ABC):
    """Port for the source streaming service (Spotify)."""

    @abstractmethod
    async def get_current_user(self, access_token: str) -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_user_playlists(self, access_token: str) -> list[SourcePlaylist]:
        """All playlists of the current user (every page)."""
        pass

    @abstractmethod
    async def get_playlist(self, playlist_id: str, access_token: str) -> SourcePlaylist:
        pass

    @abstractmethod
    async def get_playlist_tracks(
        self, playlist_id: str, access_token: str
    ) -> list[TrackRef]:
        """All tracks of a playlist (every page)."""
        pass

    @abstractmethod
    async def get_saved_tracks(self, access_token: str) -> list[TrackRef]:
        """All saved ("liked") tracks (every page)."""
        pass

    @abstractmethod
    async def get_saved_track_uris(self, access_token: str) -> list[str]:
        pass

    @abstractmethod
    async def create_playlist(
        self,
        user_id: str,
        name: str,
        access_token: str,
        description: str = "",
        public: bool = False,
    ) -> str:
        """Create a playlist and return its id."""
        pass

    @abstractmethod
    async def add_tracks_to_playlist(
        self, playlist_id: str, track_uris: list[str], access_token: str
    ) -> int:
        """Add tracks in chunks; return number of URIs sent."""
        pass


# Listen up - IMissingCache is the injected cache service. The server_id parameter is
# the partition key and is FIRST-CLASS on every method; nothing in here may read or
# write another server's data.
class IMissingCache(ABC):
    """Port for the per-server missing-track cache."""

    @abstractmethod
    def load(self, server_id: str) -> dict[str, CacheEntry]:
        pass

    @abstractmethod
    def save(self, server_id: str, entries: dict[str, CacheEntry]) -> None:
        pass

    @abstractmethod
    def update(
        self,
        server_id: str,
        playlist_name: str,
        missing: list[str],
        max_age: timedelta | None = None,
    ) -> CacheEntry:
        pass

    @abstractmethod
    def get_entry(
        self, server_id: str, playlist_name: str, max_age: timedelta | None = None
    ) -> CacheEntry | None:
        pass

    @abstractmethod
    def cleanup_older_than(self, server_id: str, max_age: timedelta) -> int:
        pass

    @abstractmethod
    def remove_entry(self, server_id: str, playlist_name: str) -> bool:
        pass

    @abstractmethod
    def clear(self, server_id: str) -> None:
        pass

    @abstractmethod
    def known_servers(self) -> list[str]:
        pass


class IProgressSink(ABC):
    """One subscriber's output stream for progress text frames."""

    @abstractmethod
    async def write(self, message: str) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


__all__ = [
    "IMissingCache",
    "IProgressSink",
    "ISourceMusicClient",
    "ITargetLibraryClient",
]
