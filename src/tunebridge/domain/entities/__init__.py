"""Domain entities."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

# Separator used in formatted missing entries ("Artist — Album — Title").
# The CSV export parses entries back by this character, don't change it.
MISSING_SEPARATOR = " — "

# Pseudo playlist id for the user's saved ("liked") tracks on Spotify
LIKED_SONGS_ID = "#LikedSongs#"


# Hey future me, TrackRef is WHAT we want to find in Plex. Identity is (title, artist)
# only - album is carried along so the missing list can show it, but two refs with
# different albums are still the same track for matching purposes (compare=False).
@dataclass(frozen=True)
class TrackRef:
    """Semantic identity of a source track to be matched."""

    title: str
    artist: str
    album: str | None = field(default=None, compare=False)

    def missing_entry(self) -> "MissingEntry":
        """Describe this track as a missing-list entry."""
        return MissingEntry(artist=self.artist, title=self.title, album=self.album)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of locating one TrackRef in the Plex library.

    target_key is the Plex ratingKey, None if not found. library_section and
    server_id record WHERE the match came from - the exporter batches uploads
    per server, never globally.
    """

    track: TrackRef
    target_key: str | None
    library_section: str
    server_id: str

    @property
    def found(self) -> bool:
        return self.target_key is not None


def _plain_field(text: str) -> str:
    # A field must not contain the separator dash, or parse() splits it apart
    return text.strip().replace("—", "-")


@dataclass(frozen=True)
class MissingEntry:
    """A track that could not be found, in "Artist — [Album — ]Title" form.

    Em-dashes inside a field are written as "-", so format() and parse()
    agree on which part is the artist and which is the title.
    """

    artist: str
    title: str
    album: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Dedup identity: case-insensitive (artist, title)."""
        return (_plain_field(self.artist).casefold(), _plain_field(self.title).casefold())

    def format(self) -> str:
        parts = [_plain_field(self.artist)]
        if self.album and self.album.strip():
            parts.append(_plain_field(self.album))
        parts.append(_plain_field(self.title))
        return MISSING_SEPARATOR.join(parts)

    @classmethod
    def parse(cls, text: str) -> "MissingEntry":
        """Parse a formatted entry back. Tolerates a missing separator."""
        parts = [p.strip() for p in text.split("—")]
        if len(parts) == 1:
            return cls(artist="", title=parts[0])
        if len(parts) == 2:
            return cls(artist=parts[0], title=parts[1])
        return cls(artist=parts[0], album=" - ".join(parts[1:-1]), title=parts[-1])

    def __str__(self) -> str:
        return self.format()


def dedupe_missing(items: Iterable[str]) -> list[str]:
    """Keep the first occurrence per (artist, title), preserving order."""
    seen: set[tuple[str, str]] = set()
    result: list[str] = []
    for item in items:
        if not item or not item.strip():
            continue
        key = MissingEntry.parse(item).key
        if key in seen:
            continue
        seen.add(key)
        result.append(item.strip())
    return result


# Hey future me - CacheEntry is the persisted "we already looked, it's not there"
# record for ONE playlist on ONE Plex server. items only ever grow through merge();
# the entry disappears as a whole (sweep, explicit clear, CSV download, clean export).
@dataclass
class CacheEntry:
    """Per-playlist missing-track record."""

    items: list[str] = field(default_factory=list)
    created: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    def merge(self, new_items: Iterable[str], now: datetime | None = None) -> None:
        """Union new items into this entry (dedupe by artist+title)."""
        self.items = dedupe_missing([*self.items, *new_items])
        self.updated = now or datetime.now(UTC)

    def age(self, now: datetime | None = None) -> timedelta:
        return (now or datetime.now(UTC)) - self.created

    def is_older_than(self, max_age: timedelta, now: datetime | None = None) -> bool:
        return self.age(now) > max_age

    def keys(self) -> set[tuple[str, str]]:
        return {MissingEntry.parse(item).key for item in self.items}

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": list(self.items),
            "created": self.created.isoformat(),
            "updated": self.updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """Build from persisted JSON; raises ValueError/TypeError on bad shape."""
        items = data.get("items") or []
        if not isinstance(items, list):
            raise TypeError("items must be a list")
        created = _parse_timestamp(data.get("created"))
        updated = _parse_timestamp(data.get("updated")) if data.get("updated") else created
        return cls(items=[str(i) for i in items], created=created, updated=updated)


def _parse_timestamp(value: Any) -> datetime:
    if not value:
        raise ValueError("missing timestamp")
    parsed = datetime.fromisoformat(str(value))
    # Naive timestamps are treated as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class PlexConnection:
    """Resolved Plex endpoint plus the caller's token for one export run."""

    base_url: str
    token: str
    server_id: str
    section_key: str

    def __repr__(self) -> str:
        # Never leak the token into logs
        return (
            f"PlexConnection(base_url={self.base_url!r}, server_id={self.server_id!r}, "
            f"section_key={self.section_key!r})"
        )


@dataclass(frozen=True)
class PlexCandidate:
    """A track returned by a Plex search."""

    rating_key: str
    title: str
    artist: str
    library_section: str
    server_id: str


@dataclass(frozen=True)
class PlexPlaylistItem:
    title: str
    artist: str
    rating_key: str | None = None


@dataclass(frozen=True)
class SyncTargetPlaylist:
    """A Plex playlist that tracks are exported into."""

    id: str
    title: str


@dataclass(frozen=True)
class SourcePlaylist:
    """A Spotify playlist as listed for export."""

    id: str
    name: str


@dataclass
class ExportSummary:
    """Result of exporting one source playlist."""

    exported_name: str
    added: int = 0
    missing: list[str] = field(default_factory=list)
    failed: int = 0
    total: int = 0

    @property
    def missing_count(self) -> int:
        return len(self.missing)


# Hey future me, these are the states an export walks through. Any state can go to
# ERROR; nothing skips the terminal message (the job runner guarantees that).
class ExportJobState(str, Enum):
    """Lifecycle state of an export job."""

    PENDING = "pending"
    SEARCHING = "searching"
    EXPORTING = "exporting"
    FINALIZING = "finalizing"
    DONE = "done"
    ERROR = "error"


_ALLOWED_TRANSITIONS: dict[ExportJobState, set[ExportJobState]] = {
    ExportJobState.PENDING: {ExportJobState.SEARCHING},
    ExportJobState.SEARCHING: {ExportJobState.EXPORTING, ExportJobState.FINALIZING},
    ExportJobState.EXPORTING: {ExportJobState.FINALIZING},
    ExportJobState.FINALIZING: {ExportJobState.DONE},
    ExportJobState.DONE: set(),
    ExportJobState.ERROR: set(),
}


@dataclass
class ExportJob:
    """Transient record of one export run, identified by an opaque job id."""

    job_id: str
    source_playlist_id: str | None = None
    target_playlist_name: str | None = None
    added: int = 0
    missing: int = 0
    failed: int = 0
    total: int = 0
    state: ExportJobState = ExportJobState.PENDING
    error_message: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    # Export-all only: one summary per finished playlist
    playlists: list[ExportSummary] = field(default_factory=list)

    def advance(self, new_state: ExportJobState) -> None:
        """Move to the next state. Raises ValueError on an invalid transition.

        ERROR is entered through fail() only.
        """
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(
                f"Cannot move export job from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def fail(self, message: str) -> None:
        """Terminate the job in the ERROR state (allowed from anywhere but DONE)."""
        if self.state is ExportJobState.DONE:
            raise ValueError("Cannot fail an export job that is already done")
        self.state = ExportJobState.ERROR
        self.error_message = message

    @property
    def is_finished(self) -> bool:
        return self.state in (ExportJobState.DONE, ExportJobState.ERROR)

    def record_playlist(self, summary: ExportSummary) -> None:
        """Add one finished playlist to an export-all job's totals."""
        self.playlists.append(summary)
        self.added += summary.added
        self.missing += summary.missing_count
        self.failed += summary.failed
        self.total += summary.total


__all__ = [
    "LIKED_SONGS_ID",
    "MISSING_SEPARATOR",
    "CacheEntry",
    "ExportJob",
    "ExportJobState",
    "ExportSummary",
    "MatchResult",
    "MissingEntry",
    "PlexCandidate",
    "PlexConnection",
    "PlexPlaylistItem",
    "SourcePlaylist",
    "SyncTargetPlaylist",
    "TrackRef",
    "dedupe_missing",
]
