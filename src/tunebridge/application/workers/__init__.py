"""Background workers."""

from tunebridge.application.workers.export_job_runner import ExportJobRunner
from tunebridge.application.workers.missing_cache_cleanup_worker import (
    MissingCacheCleanupWorker,
    create_missing_cache_cleanup_worker,
)

__all__ = [
    "ExportJobRunner",
    "MissingCacheCleanupWorker",
    "create_missing_cache_cleanup_worker",
]
