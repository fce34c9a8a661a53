"""Playlist naming rules for exports.

Two names matter for one export:
- the EXPORT NAME ("Spotify - Road Trip"), used as the missing-cache key and
  shown to the user
- the PLEX TITLE a newly created playlist gets ("Spotify - Road Trip_Spotify_2025-01-31")
"""

from datetime import date

from tunebridge.domain.value_objects.normalization import strip_trailing_annotation

EXPORT_NAME_PREFIX = "Spotify - "
LIKED_SONGS_NAME = "Liked Songs"
PLEX_TITLE_SUFFIX = "_Spotify_"


def default_export_name(source_name: str) -> str:
    """Export name derived from the source playlist name."""
    return f"{EXPORT_NAME_PREFIX}{source_name.strip()}"


def resolve_export_name(explicit_name: str | None, source_name: str) -> str:
    """Explicit override wins, otherwise derive from the source playlist."""
    if explicit_name and explicit_name.strip():
        return explicit_name.strip()
    return default_export_name(source_name)


def export_playlist_title(name: str, today: date | None = None) -> str:
    """Title a playlist gets on Plex when we create it.

    Strips a trailing "(...)" annotation and appends "_Spotify_YYYY-MM-DD" so
    our playlists never collide with hand-made ones. Already suffixed names are
    left alone.

    Example:
        >>> export_playlist_title("Road Trip (2023)", date(2025, 1, 31))
        'Road Trip_Spotify_2025-01-31'
    """
    base = strip_trailing_annotation(name) or name.strip()
    suffix = f"{PLEX_TITLE_SUFFIX}{(today or date.today()).isoformat()}"
    if base.endswith(suffix):
        return base
    return f"{base}{suffix}"
