"""Edit-distance similarity between a wanted track and a Plex candidate.

The score is an unnormalized dissimilarity: Levenshtein(title) +
Levenshtein(artist) over normalized strings. 0 means identical after
normalization, lower is better. It's a RANKING signal only - callers must still
apply an acceptance threshold (see PlexSettings.fuzzy_max_score).
"""

from rapidfuzz.distance import Levenshtein

from tunebridge.domain.value_objects.normalization import normalize


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance with unit insert/delete/substitute costs."""
    return int(Levenshtein.distance(a, b))


def score(
    wanted_title: str | None,
    wanted_artist: str | None,
    candidate_title: str | None,
    candidate_artist: str | None,
) -> int:
    """Score a candidate against the wanted (title, artist) pair.

    Args:
        wanted_title: Title from the source playlist
        wanted_artist: Artist from the source playlist
        candidate_title: Title reported by Plex
        candidate_artist: Artist (grandparentTitle) reported by Plex

    Returns:
        Sum of title and artist edit distances, always >= 0
    """
    title_distance = levenshtein(normalize(wanted_title), normalize(candidate_title))
    artist_distance = levenshtein(
        normalize(wanted_artist), normalize(candidate_artist)
    )
    return title_distance + artist_distance


def is_acceptable(candidate_score: int, max_score: int) -> bool:
    """Check a fuzzy score against the acceptance threshold (strictly below)."""
    return candidate_score < max_score
