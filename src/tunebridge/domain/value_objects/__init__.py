"""Domain value objects: text normalization, similarity scoring, progress events."""

from tunebridge.domain.value_objects.naming import (
    default_export_name,
    export_playlist_title,
    resolve_export_name,
)
from tunebridge.domain.value_objects.normalization import (
    normalize,
    strip_trailing_annotation,
)
from tunebridge.domain.value_objects.progress_events import (
    BatchProgress,
    Done,
    Error,
    ProgressEvent,
    Started,
    Status,
    encode_event,
    is_terminal,
)
from tunebridge.domain.value_objects.similarity import is_acceptable, levenshtein, score

__all__ = [
    "BatchProgress",
    "Done",
    "Error",
    "ProgressEvent",
    "Started",
    "Status",
    "default_export_name",
    "encode_event",
    "export_playlist_title",
    "is_acceptable",
    "is_terminal",
    "levenshtein",
    "normalize",
    "resolve_export_name",
    "score",
    "strip_trailing_annotation",
]
