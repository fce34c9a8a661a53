"""tunebridge - mirror Spotify playlists into a Plex music library."""

__version__ = "0.1.0"
