"""Application settings loaded from environment variables.

Hey future me - every tunable of the sync engine lives here! Nested groups are
addressed with a double underscore, e.g. TUNEBRIDGE_PLEX__BATCH_SIZE=25.
Credentials are NOT settings: tokens arrive per request and are passed
explicitly into the services.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PlexSettings(BaseModel):
    """Plex API configuration.

    The X-Plex-* identification values are static - Plex requires them on every
    request to authorize the client, they are not per-request state.
    """

    discovery_url: str = "https://plex.tv/api/resources"
    client_identifier: str = "tunebridge-spotify-to-plex"
    product: str = "tunebridge"
    version: str = "1.0"
    platform: str = "Web"
    device: str = "Server"
    device_name: str = "tunebridge"
    timeout: float = 30.0

    # Batch upload tuning. 50 keys per PUT keeps the URI list below Plex's
    # practical URL length limit.
    batch_size: int = Field(default=50, ge=1)
    batch_delay: float = Field(default=0.2, ge=0.0)

    # Fuzzy acceptance: candidate accepted if score < fuzzy_max_score.
    fuzzy_max_score: int = Field(default=3, ge=1)


class SpotifySettings(BaseModel):
    """Spotify Web API configuration."""

    api_base_url: str = "https://api.spotify.com/v1"
    timeout: float = 30.0
    # Fixed pause between successive calls in paging/chunk loops
    api_delay: float = Field(default=0.5, ge=0.0)
    page_size: int = Field(default=50, ge=1, le=50)
    add_chunk_size: int = Field(default=100, ge=1, le=100)


class MissingCacheSettings(BaseModel):
    """Missing-track cache configuration."""

    max_age_hours: float = Field(default=24.0, gt=0)
    cleanup_interval_hours: float = Field(default=6.0, gt=0)


class APISettings(BaseModel):
    """HTTP server binding."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)


class ObservabilitySettings(BaseModel):
    """Logging configuration."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="TUNEBRIDGE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "tunebridge"
    log_level: str = "INFO"
    data_dir: Path = Path("./data")

    api: APISettings = Field(default_factory=APISettings)
    plex: PlexSettings = Field(default_factory=PlexSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    missing_cache: MissingCacheSettings = Field(default_factory=MissingCacheSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def missing_cache_dir(self) -> Path:
        """Root directory of the per-server missing-track cache files."""
        return self.data_dir / "missing_cache"

    def ensure_directories(self) -> None:
        """Create storage directories if they don't exist yet."""
        self.missing_cache_dir.mkdir(parents=True, exist_ok=True)


# Listen up - lru_cache makes this a process-wide singleton. Tests that need
# different values build Settings(...) directly instead of patching env.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
