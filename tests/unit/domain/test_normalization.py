"""Tests for title/artist normalization and similarity scoring."""

import pytest

from tunebridge.domain.value_objects.normalization import normalize, strip_trailing_annotation
from tunebridge.domain.value_objects.similarity import is_acceptable, levenshtein, score


class TestNormalize:
    """Test normalize() folding rules."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Hey Jude (Remastered 2015)", "hey jude"),
            ("Hey Jude [Live]", "hey jude"),
            ("Song feat. Someone Else", "song"),
            ("Song ft. Someone", "song"),
            ("Don’t Stop Me Now", "don't stop me now"),
            ("Rock – Roll", "rock - roll"),
            ("AC/DC!", "acdc"),
            ("  lots   of    space  ", "lots of space"),
            ("Beyoncé", "beyoncé"),
        ],
    )
    def test_normalize_examples(self, raw: str, expected: str) -> None:
        """Known inputs fold to the expected canonical form."""
        assert normalize(raw) == expected

    def test_normalize_none_and_empty(self) -> None:
        """None and empty string are valid inputs and give ""."""
        assert normalize(None) == ""
        assert normalize("") == ""
        assert normalize("   ") == ""

    def test_feat_without_dot_is_kept(self) -> None:
        """Plain "feat" without a dot can be part of a real title."""
        assert normalize("Feat Of Strength") == "feat of strength"

    @pytest.mark.parametrize(
        "raw",
        [
            "Hey Jude (Remastered 2015) [feat. The Beatles]",
            "Don’t Stop – Me (Now)",
            "a (b",
            "Song ft.. Other",
            "x feat. y (z) [w]",
            "ÄÖÜ — ß",
        ],
    )
    def test_normalize_is_idempotent(self, raw: str) -> None:
        """normalize(normalize(s)) == normalize(s)."""
        once = normalize(raw)
        assert normalize(once) == once


class TestStripTrailingAnnotation:
    """Test removal of a trailing "(...)" from playlist names."""

    def test_strips_trailing_group(self) -> None:
        assert strip_trailing_annotation("Road Trip (2023)") == "Road Trip"

    def test_only_trailing_group_is_removed(self) -> None:
        assert strip_trailing_annotation("(Intro) Mix") == "(Intro) Mix"

    def test_empty(self) -> None:
        assert strip_trailing_annotation(None) == ""
        assert strip_trailing_annotation("") == ""


class TestSimilarity:
    """Test edit distance scoring."""

    def test_levenshtein_classic(self) -> None:
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_identical_pair_scores_zero(self) -> None:
        assert score("Hey Jude", "The Beatles", "Hey Jude", "The Beatles") == 0

    def test_score_ignores_annotations(self) -> None:
        """Remaster tags and case don't count as differences."""
        assert score("Hey Jude", "The Beatles", "HEY JUDE (Remastered)", "the beatles") == 0

    def test_score_sums_title_and_artist(self) -> None:
        assert score("abc", "xyz", "abd", "xyy") == 2

    def test_score_is_non_negative_with_none(self) -> None:
        assert score(None, None, "a", "b") == 2

    def test_threshold_is_strict(self) -> None:
        """A candidate is accepted only strictly below the threshold."""
        assert is_acceptable(2, 3)
        assert not is_acceptable(3, 3)
        assert not is_acceptable(4, 3)
