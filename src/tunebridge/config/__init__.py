"""Configuration module for tunebridge."""

from .settings import (
    APISettings,
    MissingCacheSettings,
    ObservabilitySettings,
    PlexSettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "APISettings",
    "MissingCacheSettings",
    "ObservabilitySettings",
    "PlexSettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
