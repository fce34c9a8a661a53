"""Persistence layer: file-backed missing-track cache."""

from tunebridge.infrastructure.persistence.missing_cache_store import MissingCacheStore

__all__ = ["MissingCacheStore"]
