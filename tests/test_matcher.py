"""Tests for fuzzy question matching."""

from __future__ import annotations

import pytest

from quizdocs.quiz.matcher import (
    jaccard,
    make_question,
    match,
    normalize_text,
    overlap_coefficient,
    score_match,
    substring_score,
    to_tokens,
)

SPIN_QUESTION = "What is the penalty for a spin during dynamic events?"


class TestNormalizeText:
    """Test normalize_text and to_tokens."""

    def test_normalize(self) -> None:
        """Should lower-case, unescape, and strip symbols."""
        assert normalize_text("Don’t  STOP\\tnow!\\n(2025)") == "don t stop now 2025"

    def test_normalize_unicode_letters(self) -> None:
        """Should keep non-ASCII letters."""
        assert normalize_text("Vad är  bromskraften?") == "vad är bromskraften"

    def test_normalize_empty(self) -> None:
        """Should return an empty string for symbol-only input."""
        assert normalize_text(" -- ?? ") == ""

    def test_tokens_skip_single_characters(self) -> None:
        """Should keep tokens of two or more characters as a set."""
        assert to_tokens("a spin a spin in 2") == frozenset({"spin", "in"})


class TestSimilarity:
    """Test the similarity building blocks."""

    def test_jaccard(self) -> None:
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert jaccard(set(), {"a"}) == 0.0

    def test_overlap_coefficient(self) -> None:
        assert overlap_coefficient({"a", "b"}, {"a", "b", "c", "d"}) == 1.0
        assert overlap_coefficient(set(), {"a"}) == 0.0

    def test_substring_score(self) -> None:
        assert substring_score("brake", "the brake pedal") == 0.85
        assert substring_score("abc", "abcdef") == 0.0
        assert substring_score("", "abc") == 0.0
        assert substring_score("same", "same") == 1.0


class TestScoreMatch:
    """Test score_match priority rules."""

    def test_exact(self) -> None:
        """Should score equal normalised texts 1.0."""
        a = make_question(-1, "Total current limit")
        b = make_question(1, "total current LIMIT!")
        assert score_match(a, b) == 1.0

    def test_long_containment(self) -> None:
        """Should score containment of 20+ characters 0.95."""
        query = make_question(-1, "the penalty for a spin during dynamic events")
        assert score_match(query, make_question(1, SPIN_QUESTION)) == 0.95

    def test_short_containment_uses_substring_score(self) -> None:
        """Should fall back to the 0.85 substring score below 20 characters."""
        query = make_question(-1, "penalty for a spin")
        assert score_match(query, make_question(1, SPIN_QUESTION)) == pytest.approx(0.85)

    def test_blend(self) -> None:
        """Should blend 0.3 Jaccard with 0.7 overlap coefficient."""
        query = make_question(-1, "describe the penalty for a spin")
        # 4 shared tokens; 5 query tokens, 9 candidate tokens.
        assert score_match(query, make_question(1, SPIN_QUESTION)) == pytest.approx(
            0.3 * 4 / 10 + 0.7 * 4 / 5
        )

    def test_empty(self) -> None:
        """Should score empty texts 0."""
        assert score_match(make_question(-1, "?!"), make_question(1, "?!")) == 0.0


class TestMatch:
    """Test match function."""

    def test_equality(self) -> None:
        """Should return the identical question with score 1.0."""
        matches = match("Total current limit", [make_question(7, "Total current limit")])
        assert len(matches) == 1
        assert matches[0].question.id == 7
        assert matches[0].score == 1.0

    def test_overlap_match_returned(self) -> None:
        """Should return a partial paraphrase above the default threshold."""
        matches = match("describe the penalty for a spin", [make_question(3, SPIN_QUESTION)])
        assert [m.question.id for m in matches] == [3]
        assert matches[0].score >= 0.4

    def test_threshold_excludes(self) -> None:
        """Should drop candidates below the threshold."""
        matches = match("describe the penalty for a spin", [make_question(3, SPIN_QUESTION)], threshold=0.9)
        assert matches == []

    def test_rejection(self) -> None:
        """Should not match unrelated questions."""
        candidate = make_question(1, "cost report submission deadline")
        assert score_match(make_question(-1, "brake pedal travel sensor"), candidate) < 0.4
        assert match("brake pedal travel sensor", [candidate]) == []

    def test_ranking_and_top_n(self) -> None:
        """Should rank best first and keep ties in candidate order."""
        candidates = [
            make_question(1, "brake pedal force"),
            make_question(2, "Total current limit"),
            make_question(3, "brake pedal force"),
        ]

        matches = match("brake pedal force", candidates, top_n=None)
        assert [m.question.id for m in matches] == [1, 3]

        assert [m.question.id for m in match("brake pedal force", candidates)] == [1]
