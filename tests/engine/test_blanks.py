"""
Unit Tests for fill-in-blank matching and scoring
"""

import pytest

from answer_engine.core.models import AnswerKey, BlankMatchMode, QuestionFormat
from answer_engine.engine.scoring import blank_matches, normalize_blank_text, score_fill_in_blank
from answer_engine.engine.scoring.blanks import similarity


def _blank_key(*alternatives, points=3.0, modes=()):
    return AnswerKey(
        4, QuestionFormat.FILL_IN_BLANK, points,
        expected_blank_answers=tuple(tuple(a) for a in alternatives),
        blank_match_modes=tuple(modes),
    )


class TestBlankMatches:
    """Tests for the per-blank comparison."""

    @pytest.mark.parametrize("detected", ["Paris", " paris ", "PARIS"])
    def test_exact_when_case_or_padding_differs_then_matches(self, detected):
        assert blank_matches(detected, ["Paris"])

    def test_exact_when_any_alternative_matches_then_true(self):
        assert blank_matches("Berlín", ["Berlin", "Berlín"])

    def test_exact_when_different_text_then_false(self):
        assert not blank_matches("Paris, France", ["Paris"])

    def test_contains_when_answer_inside_detected_then_true(self):
        assert blank_matches("Paris, France", ["Paris"], BlankMatchMode.CONTAINS)

    def test_contains_when_detected_inside_answer_then_true(self):
        assert blank_matches("mitochondria", ["the mitochondria"], BlankMatchMode.CONTAINS)

    def test_fuzzy_when_small_typo_then_true(self):
        assert blank_matches("photosynthsis", ["photosynthesis"], BlankMatchMode.FUZZY)

    def test_fuzzy_when_unrelated_then_false(self):
        assert not blank_matches("respiration", ["photosynthesis"], BlankMatchMode.FUZZY)

    def test_fuzzy_when_threshold_one_then_exact_only(self):
        assert not blank_matches(
            "photosynthsis", ["photosynthesis"], BlankMatchMode.FUZZY, fuzzy_threshold=1.0
        )

    @pytest.mark.parametrize("mode", list(BlankMatchMode))
    @pytest.mark.parametrize("detected", ["", "   ", "illegible", "ILLEGIBLE"])
    def test_match_when_empty_or_illegible_then_never_matches(self, mode, detected):
        assert not blank_matches(detected, ["illegible", "x"], mode)

    def test_normalize_blank_text_when_inner_spaces_then_collapsed(self):
        assert normalize_blank_text("  Carbon   Dioxide ") == "carbon dioxide"


class TestSimilarity:
    def test_similarity_when_one_letter_dropped_then_matching_blocks_ratio(self):
        """2 * 5 matched characters over 11 total, not 1 - 1/6 by edit distance."""
        assert similarity("colour", "color") == pytest.approx(10 / 11)

    def test_similarity_when_identical_then_one(self):
        assert similarity("paris", "paris") == 1.0


class TestScoreFillInBlank:
    """Tests for proportional blank credit."""

    def test_score_when_all_blanks_match_then_full_points(self):
        key = _blank_key(["a"], ["b"], ["c"])

        score = score_fill_in_blank(key, ("A", "b", " c"))

        assert score.earned == 3.0
        assert score.fully_correct
        assert score.explanation == "3/3 blanks correct"

    def test_score_when_some_blanks_match_then_proportional(self):
        key = _blank_key(["a"], ["b"], ["c"])

        score = score_fill_in_blank(key, ("a", "x", "c"))

        assert score.earned == pytest.approx(2.0)
        assert not score.fully_correct

    def test_score_when_blanks_missing_then_count_as_wrong(self):
        key = _blank_key(["a"], ["b"], ["c"])

        score = score_fill_in_blank(key, ("a",))

        assert score.earned == pytest.approx(1.0)
        assert score.explanation == "1/3 blanks correct"

    def test_score_when_no_detection_then_zero(self):
        score = score_fill_in_blank(_blank_key(["a"]), ())

        assert score.earned == 0.0
        assert not score.fully_correct

    def test_score_when_extra_detected_blanks_then_ignored(self):
        score = score_fill_in_blank(_blank_key(["a"], points=1.0), ("a", "b", "c"))

        assert score.earned == 1.0
        assert score.fully_correct

    def test_score_when_modes_differ_per_blank_then_each_applied(self):
        key = _blank_key(
            ["Paris"], ["photosynthesis"],
            points=2.0,
            modes=(BlankMatchMode.EXACT, BlankMatchMode.FUZZY),
        )

        score = score_fill_in_blank(key, ("Paris", "photosynthsis"))

        assert score.fully_correct
