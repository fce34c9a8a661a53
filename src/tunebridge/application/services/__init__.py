"""Application services."""

from tunebridge.application.services.batch_exporter import BatchExporter, BatchExportResult
from tunebridge.application.services.liked_songs_service import LikedSongsCloneService
from tunebridge.application.services.missing_report_service import build_missing_csv
from tunebridge.application.services.playlist_export_service import (
    PlaylistExportService,
    SyncCredentials,
)
from tunebridge.application.services.progress_channel import ProgressChannel, QueueSink
from tunebridge.application.services.track_matcher import TrackMatcher

__all__ = [
    "BatchExportResult",
    "BatchExporter",
    "LikedSongsCloneService",
    "PlaylistExportService",
    "ProgressChannel",
    "QueueSink",
    "SyncCredentials",
    "TrackMatcher",
    "build_missing_csv",
]
