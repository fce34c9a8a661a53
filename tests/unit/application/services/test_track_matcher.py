"""Tests for the three-step track matcher."""

import xml.etree.ElementTree as ET
from unittest.mock import AsyncMock

import httpx
import pytest

from tunebridge.application.services.track_matcher import TrackMatcher
from tunebridge.domain.entities import PlexCandidate, PlexConnection, TrackRef
from tunebridge.domain.ports import ITargetLibraryClient

CONN = PlexConnection(base_url="https://plex", token="tok", server_id="srv", section_key="3")


def candidate(key: str, title: str, artist: str, server_id: str = "srv") -> PlexCandidate:
    return PlexCandidate(
        rating_key=key, title=title, artist=artist, library_section="3", server_id=server_id
    )


@pytest.fixture
def plex() -> AsyncMock:
    client = AsyncMock(spec=ITargetLibraryClient)
    client.search_exact.return_value = None
    client.search_fuzzy.return_value = []
    client.search_global.return_value = None
    return client


class TestMatchOrder:
    """Exact → fuzzy → global, first hit wins."""

    async def test_exact_hit_skips_other_searches(self, plex: AsyncMock) -> None:
        plex.search_exact.return_value = candidate("1", "Song", "Artist")

        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)

        assert result.target_key == "1"
        plex.search_fuzzy.assert_not_awaited()
        plex.search_global.assert_not_awaited()

    async def test_fuzzy_picks_lowest_score(self, plex: AsyncMock) -> None:
        plex.search_fuzzy.return_value = [
            candidate("far", "Something Else", "Nobody"),
            candidate("close", "Song (Remastered)", "Artist"),
        ]

        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)

        assert result.target_key == "close"
        plex.search_fuzzy.assert_awaited_once_with("https://plex", "3", "Artist Song", "tok")
        plex.search_global.assert_not_awaited()

    async def test_fuzzy_tie_keeps_first(self, plex: AsyncMock) -> None:
        plex.search_fuzzy.return_value = [
            candidate("first", "Songs", "Artist"),
            candidate("second", "Sonk", "Artist"),
        ]
        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)
        assert result.target_key == "first"

    async def test_fuzzy_threshold_rejects(self, plex: AsyncMock) -> None:
        """Score 3 with threshold 3 is rejected, global search runs next."""
        plex.search_fuzzy.return_value = [candidate("x", "Songxyz", "Artist")]
        plex.search_global.return_value = candidate("g", "Song", "Artist")

        result = await TrackMatcher(plex, fuzzy_max_score=3).match_one(
            TrackRef("Song", "Artist"), CONN
        )

        assert result.target_key == "g"

    async def test_nothing_found(self, plex: AsyncMock) -> None:
        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)
        assert not result.found
        assert result.library_section == "3"
        assert result.server_id == "srv"

    async def test_result_carries_candidate_server(self, plex: AsyncMock) -> None:
        plex.search_exact.return_value = candidate("1", "Song", "Artist", server_id="other")
        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)
        assert result.server_id == "other"

    async def test_result_falls_back_to_connection_server(self, plex: AsyncMock) -> None:
        plex.search_exact.return_value = candidate("1", "Song", "Artist", server_id="")
        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)
        assert result.server_id == "srv"


class TestSearchErrors:
    """A failing step counts as "not found", never aborts the match."""

    async def test_http_error_falls_through(self, plex: AsyncMock) -> None:
        plex.search_exact.side_effect = httpx.ConnectError("down")
        plex.search_fuzzy.side_effect = ET.ParseError("garbage")
        plex.search_global.return_value = candidate("g", "Song", "Artist")

        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)

        assert result.target_key == "g"

    async def test_all_steps_failing_is_a_miss(self, plex: AsyncMock) -> None:
        plex.search_exact.side_effect = httpx.ReadTimeout("slow")
        plex.search_fuzzy.side_effect = httpx.ReadTimeout("slow")
        plex.search_global.side_effect = httpx.ReadTimeout("slow")

        result = await TrackMatcher(plex).match_one(TrackRef("Song", "Artist"), CONN)

        assert not result.found


class TestMatch:
    async def test_results_in_input_order_with_progress(self, plex: AsyncMock) -> None:
        async def exact(base_url, section, title, artist, token):
            return candidate(title, title, artist) if title != "missing" else None

        plex.search_exact.side_effect = exact
        progress: list[tuple[int, int]] = []

        async def on_progress(done: int, total: int) -> None:
            progress.append((done, total))

        tracks = [TrackRef("a", "X"), TrackRef("missing", "X"), TrackRef("c", "X")]
        results = await TrackMatcher(plex).match(tracks, CONN, on_progress=on_progress)

        assert [r.target_key for r in results] == ["a", None, "c"]
        assert progress == [(1, 3), (2, 3), (3, 3)]

    async def test_duplicates_are_searched_again(self, plex: AsyncMock) -> None:
        await TrackMatcher(plex).match([TrackRef("a", "X"), TrackRef("a", "X")], CONN)
        assert plex.search_exact.await_count == 2
