"""Tests for domain entities."""

from datetime import UTC, datetime, timedelta

import pytest

from tunebridge.domain.entities import (
    CacheEntry,
    ExportJob,
    ExportJobState,
    ExportSummary,
    MatchResult,
    MissingEntry,
    PlexConnection,
    TrackRef,
    dedupe_missing,
)


class TestTrackRef:
    def test_identity_ignores_album(self) -> None:
        """Two refs with different albums are the same track."""
        assert TrackRef("Song", "Artist", "A") == TrackRef("Song", "Artist", "B")

    def test_missing_entry_format(self) -> None:
        assert TrackRef("Song", "Artist").missing_entry().format() == "Artist — Song"
        assert TrackRef("Song", "Artist", "Album").missing_entry().format() == (
            "Artist — Album — Song"
        )


class TestMatchResult:
    def test_found_iff_key_set(self) -> None:
        track = TrackRef("t", "a")
        assert MatchResult(track, "123", "1", "srv").found
        assert not MatchResult(track, None, "1", "srv").found


class TestMissingEntry:
    def test_parse_two_parts(self) -> None:
        entry = MissingEntry.parse("Artist — Song")
        assert (entry.artist, entry.album, entry.title) == ("Artist", None, "Song")

    def test_parse_three_parts(self) -> None:
        entry = MissingEntry.parse("Artist — Album — Song")
        assert (entry.artist, entry.album, entry.title) == ("Artist", "Album", "Song")

    def test_parse_without_separator(self) -> None:
        entry = MissingEntry.parse("Just A Title")
        assert entry.artist == ""
        assert entry.title == "Just A Title"

    def test_key_is_case_insensitive(self) -> None:
        assert MissingEntry("ARTIST", "song").key == MissingEntry("artist", "SONG", "x").key

    def test_em_dash_inside_fields_is_flattened(self) -> None:
        entry = TrackRef("Intro — Live", "Band", "Tour — 1").missing_entry()
        assert entry.format() == "Band — Tour - 1 — Intro - Live"
        parsed = MissingEntry.parse(entry.format())
        assert (parsed.artist, parsed.album, parsed.title) == ("Band", "Tour - 1", "Intro - Live")
        assert parsed.key == entry.key


class TestDedupeMissing:
    def test_keeps_first_occurrence(self) -> None:
        items = ["Artist — Song", "artist — Album — SONG", "Other — Song"]
        assert dedupe_missing(items) == ["Artist — Song", "Other — Song"]

    def test_drops_blank(self) -> None:
        assert dedupe_missing(["", "  ", "A — B"]) == ["A — B"]

    def test_em_dash_titles_stay_apart(self) -> None:
        items = [
            TrackRef("Intro — Live", "Band", "Tour 1").missing_entry().format(),
            TrackRef("Outro — Live", "Band", "Tour 2").missing_entry().format(),
        ]
        assert dedupe_missing(items) == items


class TestCacheEntry:
    def test_merge_is_union(self) -> None:
        entry = CacheEntry(items=["A — 1", "B — 2"])
        entry.merge(["B — 2", "C — 3"])
        assert entry.items == ["A — 1", "B — 2", "C — 3"]

    def test_merge_is_order_independent_as_set(self) -> None:
        first = CacheEntry()
        first.merge(["A — 1"])
        first.merge(["B — 2"])
        second = CacheEntry()
        second.merge(["B — 2"])
        second.merge(["A — 1"])
        assert first.keys() == second.keys()

    def test_age(self) -> None:
        now = datetime(2025, 1, 2, tzinfo=UTC)
        entry = CacheEntry(created=now - timedelta(hours=2), updated=now)
        assert not entry.is_older_than(timedelta(days=1), now)
        assert entry.is_older_than(timedelta(hours=1), now)

    def test_dict_round_trip(self) -> None:
        created = datetime(2025, 1, 31, 10, 0, tzinfo=UTC)
        entry = CacheEntry(items=["A — 1"], created=created, updated=created)
        restored = CacheEntry.from_dict(entry.to_dict())
        assert restored == entry

    def test_naive_timestamp_is_utc(self) -> None:
        entry = CacheEntry.from_dict({"items": [], "created": "2025-01-31T10:00:00"})
        assert entry.created.tzinfo is not None
        assert entry.updated == entry.created

    def test_bad_shape_raises(self) -> None:
        with pytest.raises(TypeError):
            CacheEntry.from_dict({"items": "nope", "created": "2025-01-31T10:00:00"})
        with pytest.raises(ValueError):
            CacheEntry.from_dict({"items": []})


class TestPlexConnection:
    def test_repr_hides_token(self) -> None:
        conn = PlexConnection("https://plex:32400", "secret-token", "srv", "1")
        assert "secret-token" not in repr(conn)


class TestExportSummary:
    def test_missing_count(self) -> None:
        assert ExportSummary("x", missing=["A — 1", "B — 2"]).missing_count == 2


class TestExportJob:
    def test_happy_path(self) -> None:
        job = ExportJob(job_id="j1")
        for state in (
            ExportJobState.SEARCHING,
            ExportJobState.EXPORTING,
            ExportJobState.FINALIZING,
            ExportJobState.DONE,
        ):
            job.advance(state)
        assert job.is_finished

    def test_exporting_can_be_skipped(self) -> None:
        """Nothing found means no upload phase."""
        job = ExportJob(job_id="j1")
        job.advance(ExportJobState.SEARCHING)
        job.advance(ExportJobState.FINALIZING)
        assert job.state is ExportJobState.FINALIZING

    def test_invalid_transition(self) -> None:
        job = ExportJob(job_id="j1")
        with pytest.raises(ValueError):
            job.advance(ExportJobState.DONE)

    def test_error_only_through_fail(self) -> None:
        job = ExportJob(job_id="j1")
        with pytest.raises(ValueError):
            job.advance(ExportJobState.ERROR)
        job.fail("boom")
        assert job.state is ExportJobState.ERROR
        assert job.error_message == "boom"
        assert job.is_finished

    def test_cannot_fail_done_job(self) -> None:
        job = ExportJob(job_id="j1", state=ExportJobState.DONE)
        with pytest.raises(ValueError):
            job.fail("late")

    def test_record_playlist_accumulates(self) -> None:
        job = ExportJob(job_id="all")
        job.record_playlist(ExportSummary("One", added=3, missing=["A — 1"], total=4))
        job.record_playlist(ExportSummary("Two", added=1, failed=1, total=2))
        assert [s.exported_name for s in job.playlists] == ["One", "Two"]
        assert (job.added, job.missing, job.failed, job.total) == (4, 1, 1, 6)
