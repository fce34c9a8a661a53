"""Text normalization for track/artist matching.

Hey future me - Spotify and Plex almost never agree on the exact spelling of a
title. Spotify says "Hey Jude - Remastered 2015", Plex says "Hey Jude (Remastered)",
somebody's tags say "Hey Jude [feat. Whoever]". Before we measure edit distance
we fold all of that away so only the "real" title is compared.

normalize() is PURE and TOTAL: no exceptions, None/"" give "". It is also
idempotent - normalize(normalize(s)) == normalize(s) - because every rule either
removes characters the later rules would also remove, or only leaves characters
that none of the earlier rules touch.

Examples:
    >>> normalize("Hey Jude (Remastered 2015) [feat. The Beatles]")
    'hey jude'
    >>> normalize("Don’t Stop Me Now – Live")
    "don't stop me now - live"
"""

import re

# Any (...) or [...] group including surrounding whitespace. Non-greedy so
# "A (x) B (y)" keeps "B".
_BRACKETED = re.compile(r"\s*[\(\[].*?[\)\]]\s*")

# Trailing "feat. X" / "ft. X" clause (only with the dot, "feat" alone can be a word)
_FEATURING = re.compile(r"\s+(feat\.|ft\.)\s+.*$")

# Unicode dash and apostrophe variants mapped to their ASCII form
_PUNCTUATION_MAP = str.maketrans(
    {
        "–": "-",  # en dash
        "—": "-",  # em dash
        "’": "'",  # right single quotation mark
        "‘": "'",  # left single quotation mark
    }
)

_KEEP_EXTRA = frozenset("-'")

# One trailing "(...)" annotation, e.g. "Road Trip (2023)" -> "Road Trip"
_TRAILING_ANNOTATION = re.compile(r"\s*\([^)]*\)\s*$")


def normalize(value: str | None) -> str:
    """Canonicalize a track title or artist name for fuzzy comparison.

    Steps (in order): lowercase, drop bracketed groups, drop trailing
    feat./ft. clause, unify dashes and apostrophes, keep only
    letters/digits/whitespace/hyphen/apostrophe, collapse whitespace.

    Args:
        value: Raw title or artist (may be None)

    Returns:
        Normalized string, "" for empty input
    """
    if not value:
        return ""

    text = value.lower()
    text = _BRACKETED.sub(" ", text)
    text = _FEATURING.sub("", text)
    text = text.translate(_PUNCTUATION_MAP)
    text = "".join(
        ch for ch in text if ch.isalnum() or ch.isspace() or ch in _KEEP_EXTRA
    )
    return " ".join(text.split())


def strip_trailing_annotation(name: str | None) -> str:
    """Remove one trailing parenthetical annotation from a playlist name.

    Used for Plex playlist titles and as the canonical missing-cache key, so
    "Road Trip (2023)" and "Road Trip" share one cache entry.
    """
    if not name:
        return ""
    return _TRAILING_ANNOTATION.sub("", name).strip()
