"""Liked songs clone - copies the user's saved tracks into a real playlist.

Spotify's "Liked Songs" can't be shared or followed. Cloning them into a
private playlist makes them a normal playlist every other tool understands.
"""

import logging
from datetime import date

from tunebridge.domain.exceptions import ValidationError
from tunebridge.domain.ports import ISourceMusicClient

logger = logging.getLogger(__name__)


def default_clone_name(today: date | None = None) -> str:
    return f"Liked Songs {(today or date.today()).isoformat()}"


class LikedSongsCloneService:
    """Clone saved tracks into a new private playlist."""

    def __init__(self, spotify_client: ISourceMusicClient) -> None:
        self._spotify = spotify_client

    async def clone(self, spotify_token: str, name: str | None = None) -> tuple[str, int]:
        """Create the clone playlist and fill it.

        Args:
            spotify_token: User access token
            name: Playlist name (default "Liked Songs YYYY-MM-DD")

        Returns:
            (new playlist id, number of tracks added)

        Raises:
            ValidationError: If the user has no saved tracks
        """
        uris = await self._spotify.get_saved_track_uris(spotify_token)
        if not uris:
            raise ValidationError("No liked songs to clone")

        user = await self._spotify.get_current_user(spotify_token)
        user_id = user.get("id")
        if not user_id:
            raise ValidationError("Spotify did not return a user id")

        playlist_name = name.strip() if name and name.strip() else default_clone_name()
        playlist_id = await self._spotify.create_playlist(
            user_id,
            playlist_name,
            spotify_token,
            description="Copy of my liked songs",
            public=False,
        )
        added = await self._spotify.add_tracks_to_playlist(playlist_id, uris, spotify_token)
        logger.info("Cloned %d liked songs into playlist '%s' (%s)", added, playlist_name, playlist_id)
        return playlist_id, added
