"""External service integrations (Plex, Spotify)."""
