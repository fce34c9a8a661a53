"""File-backed missing-track cache, partitioned per Plex server.

Hey future me - this remembers which tracks of a playlist were NOT found on a
given Plex server, so the next export doesn't search them again. Layout:

    {root}/{server_id}/missing_cache.json
    {
      "Spotify - Road Trip": {
        "items": ["Artist — Title", "Artist — Album — Title"],
        "created": "2025-01-31T10:00:00+00:00",
        "updated": "2025-01-31T12:30:00+00:00"
      }
    }

RULES:
- one file per server identity, NEVER shared (different servers = different libraries)
- a corrupt/unreadable file is an empty cache (logged, never fatal)
- writes are atomic (temp file + os.replace) so a crash can't leave half a file
- update() merges (union) into a live entry, so racing exports can at worst cause a
  redundant re-search, never lose a miss

The in-memory map is the working copy; every mutation is written through to disk
while holding the lock, so concurrent update() calls serialize cleanly.
"""

import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

from tunebridge.domain.entities import CacheEntry
from tunebridge.domain.exceptions import ValidationError
from tunebridge.domain.ports import IMissingCache
from tunebridge.domain.value_objects.normalization import strip_trailing_annotation

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "missing_cache.json"

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def cache_key(playlist_name: str) -> str:
    """Canonical cache key: the playlist name without a trailing "(...)"."""
    return strip_trailing_annotation(playlist_name) or playlist_name.strip()


def _copy(entry: CacheEntry) -> CacheEntry:
    return replace(entry, items=list(entry.items))


class MissingCacheStore(IMissingCache):
    """JSON missing-track cache with one file per server identity."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = Path(root_dir)
        self._entries: dict[str, dict[str, CacheEntry]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _partition(server_id: str) -> str:
        """Directory name for a server id; applying it twice changes nothing."""
        if not server_id or not server_id.strip():
            raise ValidationError("Server identity must not be empty")
        safe = _UNSAFE_PATH_CHARS.sub("_", server_id.strip())
        # "." and ".." would escape the cache root
        if set(safe) == {"."}:
            safe = safe.replace(".", "_")
        return safe

    def _server_dir(self, server_id: str) -> Path:
        return self.root_dir / self._partition(server_id)

    def _cache_file(self, server_id: str) -> Path:
        return self._server_dir(server_id) / CACHE_FILE_NAME

    # =========================================================================
    # Disk I/O
    # =========================================================================

    def _read_file(self, server_id: str) -> dict[str, CacheEntry]:
        path = self._cache_file(server_id)
        if not path.exists():
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Missing cache for server %s unreadable, starting empty: %s", server_id, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Missing cache for server %s has unexpected shape, starting empty", server_id)
            return {}

        entries: dict[str, CacheEntry] = {}
        now = datetime.now(UTC)
        for name, raw in data.items():
            try:
                if isinstance(raw, list):
                    # Old files stored the bare item list
                    entries[name] = CacheEntry(items=[str(i) for i in raw], created=now, updated=now)
                else:
                    entries[name] = CacheEntry.from_dict(raw)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping corrupt missing cache entry '%s': %s", name, e)
        logger.debug("Loaded %d missing cache entries for server %s", len(entries), server_id)
        return entries

    def _write_file(self, server_id: str, entries: dict[str, CacheEntry]) -> None:
        path = self._cache_file(server_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {name: entry.to_dict() for name, entry in entries.items()}

        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".missing_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def _ensure_loaded(self, server_id: str) -> dict[str, CacheEntry]:
        # Keyed like the directories, so known_servers() names hit the same copy
        partition = self._partition(server_id)
        if partition not in self._entries:
            self._entries[partition] = self._read_file(server_id)
        return self._entries[partition]

    # =========================================================================
    # Public API
    # =========================================================================

    def load(self, server_id: str) -> dict[str, CacheEntry]:
        """Return a copy of all entries for one server ({} if none/corrupt)."""
        with self._lock:
            return {name: _copy(e) for name, e in self._ensure_loaded(server_id).items()}

    def save(self, server_id: str, entries: dict[str, CacheEntry]) -> None:
        """Replace the entries of one server and persist them atomically."""
        with self._lock:
            snapshot = {name: _copy(e) for name, e in entries.items()}
            self._write_file(server_id, snapshot)
            self._entries[self._partition(server_id)] = snapshot

    def update(
        self,
        server_id: str,
        playlist_name: str,
        missing: list[str],
        max_age: timedelta | None = None,
    ) -> CacheEntry:
        """Merge new misses into a playlist's entry (created if absent).

        An entry already older than max_age is started over instead, otherwise
        the misses just recorded would inherit its age and count as stale.
        """
        key = cache_key(playlist_name)
        with self._lock:
            entries = self._ensure_loaded(server_id)
            now = datetime.now(UTC)
            entry = entries.get(key)
            if entry is not None and max_age is not None and entry.is_older_than(max_age, now):
                logger.debug("Missing cache '%s' on %s expired, starting over", key, server_id)
                entry = None
            if entry is None:
                entry = CacheEntry(items=[], created=now, updated=now)
                entries[key] = entry
            entry.merge(missing, now=now)
            self._write_file(server_id, entries)
            logger.debug(
                "Missing cache '%s' on %s now holds %d items", key, server_id, len(entry.items)
            )
            return _copy(entry)

    def get_entry(
        self, server_id: str, playlist_name: str, max_age: timedelta | None = None
    ) -> CacheEntry | None:
        """Get one playlist's entry; None if absent or older than max_age."""
        with self._lock:
            entry = self._ensure_loaded(server_id).get(cache_key(playlist_name))
            if entry is None:
                return None
            if max_age is not None and entry.is_older_than(max_age):
                return None
            return _copy(entry)

    def cleanup_older_than(self, server_id: str, max_age: timedelta) -> int:
        """Drop stale entries and fold legacy "Name (...)" keys into "Name".

        Returns:
            Number of entries removed for being older than max_age
        """
        with self._lock:
            entries = self._ensure_loaded(server_id)

            merged: dict[str, CacheEntry] = {}
            for name, entry in entries.items():
                key = cache_key(name)
                existing = merged.get(key)
                if existing is None:
                    merged[key] = _copy(entry)
                    continue
                existing.merge(entry.items, now=max(existing.updated, entry.updated))
                existing.created = min(existing.created, entry.created)

            now = datetime.now(UTC)
            fresh = {k: e for k, e in merged.items() if not e.is_older_than(max_age, now)}
            removed = len(merged) - len(fresh)

            if removed or set(merged) != set(entries):
                self._write_file(server_id, fresh)
                self._entries[self._partition(server_id)] = fresh
                logger.info(
                    "Missing cache cleanup for server %s: removed %d stale entries", server_id, removed
                )
            return removed

    def remove_entry(self, server_id: str, playlist_name: str) -> bool:
        """Delete one playlist's entry. Returns False if there was none."""
        key = cache_key(playlist_name)
        with self._lock:
            entries = self._ensure_loaded(server_id)
            if key not in entries:
                return False
            del entries[key]
            self._write_file(server_id, entries)
            logger.info("Removed missing cache entry '%s' on server %s", key, server_id)
            return True

    def clear(self, server_id: str) -> None:
        """Forget every entry of one server."""
        with self._lock:
            self._write_file(server_id, {})
            self._entries[self._partition(server_id)] = {}
            logger.info("Cleared missing cache for server %s", server_id)

    def known_servers(self) -> list[str]:
        """Server ids that have a cache file (or are loaded in memory)."""
        servers: set[str] = set()
        with self._lock:
            servers.update(self._entries)
        if self.root_dir.is_dir():
            servers.update(
                child.name
                for child in self.root_dir.iterdir()
                if child.is_dir() and (child / CACHE_FILE_NAME).exists()
            )
        return sorted(servers)
