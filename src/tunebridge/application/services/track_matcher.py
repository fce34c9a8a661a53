"""Track matcher - finds source tracks in the Plex library.

Hey future me - per track we try three searches, cheapest/most precise first,
and the FIRST accepted candidate wins:

1. EXACT: section search filtered by title+artist, artist re-checked by the client
2. FUZZY: free-text section search "{artist} {title}", best edit-distance score
   accepted only if score < fuzzy_max_score (Plex free-text search returns
   anything vaguely similar, the threshold keeps false positives out)
3. GLOBAL: whole-server search, artist must match exactly

A network error or garbage XML in one step is NOT fatal - it's logged and that
step counts as "not found", then we fall through to the next step. Worst case
is 3 remote calls per track. No caching across tracks: duplicate (title, artist)
pairs in one playlist are searched again (dedupe happens at the missing-cache
level, not here).
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Awaitable, Callable

import httpx

from tunebridge.domain.entities import MatchResult, PlexCandidate, PlexConnection, TrackRef
from tunebridge.domain.ports import ITargetLibraryClient
from tunebridge.domain.value_objects.similarity import is_acceptable, score

logger = logging.getLogger(__name__)

# Failures of a single search step that mean "not found" rather than "abort"
SEARCH_ERRORS = (httpx.HTTPError, ET.ParseError)

MatchProgressCallback = Callable[[int, int], Awaitable[None]]


class TrackMatcher:
    """Resolve TrackRefs to Plex ratingKeys."""

    def __init__(self, plex_client: ITargetLibraryClient, fuzzy_max_score: int = 3) -> None:
        """Initialize matcher.

        Args:
            plex_client: Target library client
            fuzzy_max_score: Fuzzy candidates need score < this to be accepted
        """
        self._plex = plex_client
        self._fuzzy_max_score = fuzzy_max_score

    async def match(
        self,
        tracks: list[TrackRef],
        connection: PlexConnection,
        on_progress: MatchProgressCallback | None = None,
    ) -> list[MatchResult]:
        """Match every track, results in input order.

        Args:
            tracks: Tracks to look up
            connection: Resolved Plex server/section plus token
            on_progress: Optional callback(done, total) after each track

        Returns:
            One MatchResult per input track
        """
        results: list[MatchResult] = []
        total = len(tracks)
        for index, track in enumerate(tracks, start=1):
            results.append(await self.match_one(track, connection))
            if on_progress is not None:
                await on_progress(index, total)

        found = sum(1 for r in results if r.found)
        logger.info("Matched %d/%d tracks on server %s", found, total, connection.server_id)
        return results

    async def match_one(self, track: TrackRef, connection: PlexConnection) -> MatchResult:
        candidate = (
            await self._exact(track, connection)
            or await self._fuzzy(track, connection)
            or await self._global(track, connection)
        )
        if candidate is None:
            logger.debug("No match for %s - %s", track.artist, track.title)
            return MatchResult(
                track=track,
                target_key=None,
                library_section=connection.section_key,
                server_id=connection.server_id,
            )
        return MatchResult(
            track=track,
            target_key=candidate.rating_key,
            library_section=candidate.library_section or connection.section_key,
            server_id=candidate.server_id or connection.server_id,
        )

    async def _exact(self, track: TrackRef, conn: PlexConnection) -> PlexCandidate | None:
        try:
            candidate = await self._plex.search_exact(
                conn.base_url, conn.section_key, track.title, track.artist, conn.token
            )
        except SEARCH_ERRORS as e:
            logger.warning("Exact search failed for %s - %s: %s", track.artist, track.title, e)
            return None
        if candidate is not None:
            logger.debug("Exact match %s - %s (%s)", track.artist, track.title, candidate.rating_key)
        return candidate

    async def _fuzzy(self, track: TrackRef, conn: PlexConnection) -> PlexCandidate | None:
        query = f"{track.artist} {track.title}".strip()
        try:
            candidates = await self._plex.search_fuzzy(
                conn.base_url, conn.section_key, query, conn.token
            )
        except SEARCH_ERRORS as e:
            logger.warning("Fuzzy search failed for %s - %s: %s", track.artist, track.title, e)
            return None

        best: PlexCandidate | None = None
        best_score: int | None = None
        # Ties keep the first candidate (Plex's own relevance order)
        for candidate in candidates:
            candidate_score = score(track.title, track.artist, candidate.title, candidate.artist)
            if best_score is None or candidate_score < best_score:
                best, best_score = candidate, candidate_score

        if best is None or best_score is None:
            return None
        if not is_acceptable(best_score, self._fuzzy_max_score):
            logger.debug(
                "Fuzzy candidate for %s - %s rejected (score %d)",
                track.artist,
                track.title,
                best_score,
            )
            return None
        logger.debug(
            "Fuzzy match %s - %s -> %s - %s (score %d)",
            track.artist,
            track.title,
            best.artist,
            best.title,
            best_score,
        )
        return best

    async def _global(self, track: TrackRef, conn: PlexConnection) -> PlexCandidate | None:
        query = f"{track.artist} {track.title}".strip()
        try:
            return await self._plex.search_global(conn.base_url, query, track.artist, conn.token)
        except SEARCH_ERRORS as e:
            logger.warning("Global search failed for %s - %s: %s", track.artist, track.title, e)
            return None
