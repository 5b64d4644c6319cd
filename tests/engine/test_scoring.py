"""
Unit Tests for the choice scoring rules and question dispatch

Includes the partial-credit scenarios and boundaries of the multi_choice
penalty formula.
"""

import itertools

import pytest

from answer_engine.core.models import (
    AnswerKey,
    Confidence,
    DetectedResponse,
    QuestionFormat,
    ResponseStatus,
)
from answer_engine.engine.config import EngineConfig
from answer_engine.engine.matcher import match_responses
from answer_engine.engine.scoring import (
    score_multi_choice,
    score_question,
    score_single_choice,
)


def _multi(correct, points=2.0, weights=()):
    return AnswerKey(
        1, QuestionFormat.MULTI_CHOICE, points,
        options=tuple((o, o) for o in "ABCDE"),
        correct_option_ids=tuple(correct),
        option_weights=tuple(weights),
    )


def _single(correct, points=1.0):
    return AnswerKey(1, QuestionFormat.SINGLE_CHOICE, points, correct_option_ids=tuple(correct))


class TestScoreMultiChoice:
    """Tests for weighted partial credit with a wrong-option penalty."""

    # ─────────────────────────────────────────────────────────────────────────
    # Key {A, C}, 2 points
    # ─────────────────────────────────────────────────────────────────────────

    def test_score_when_half_correct_no_wrong_then_half_credit(self):
        score = score_multi_choice(_multi("AC"), frozenset({"A"}))

        assert score.earned == 1.0
        assert not score.fully_correct
        assert score.explanation == "1/2 correct, 0 wrong"

    def test_score_when_one_correct_one_wrong_then_quarter_credit(self):
        """(1 - 0.5) / 2 = 0.25 of 2 points."""
        score = score_multi_choice(_multi("AC"), frozenset({"A", "B"}))

        assert score.earned == 0.5
        assert score.explanation == "1/2 correct, 1 wrong"

    def test_score_when_empty_selection_then_zero(self):
        score = score_multi_choice(_multi("AC"), frozenset())

        assert score.earned == 0.0
        assert not score.fully_correct

    def test_score_when_exact_selection_then_full_credit(self):
        score = score_multi_choice(_multi("AC"), frozenset({"A", "C"}))

        assert score.earned == 2.0
        assert score.fully_correct

    def test_score_when_only_wrong_selections_then_clamped_to_zero(self):
        score = score_multi_choice(_multi("AC"), frozenset({"B", "D", "E"}))
        assert score.earned == 0.0

    def test_score_when_all_selected_then_not_fully_correct(self):
        """Full credit is never awarded for over-selection."""
        score = score_multi_choice(_multi("AC"), frozenset("ABCDE"))

        assert not score.fully_correct
        assert score.earned == pytest.approx(2.0 * (2 - 1.5) / 2)

    def test_score_when_three_of_five_on_three_points_then_exactly_one_point_eight(self):
        score = score_multi_choice(_multi("ABCDE", points=3.0), frozenset("ABC"))

        assert score.earned == 1.8
        assert score.explanation == "3/5 correct, 0 wrong"

    def test_score_when_unknown_option_selected_then_counts_as_wrong(self):
        score = score_multi_choice(_multi("AC"), frozenset({"A", "C", "Z"}))

        assert score.explanation == "2/2 correct, 1 wrong"
        assert score.earned == pytest.approx(1.5)

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @pytest.mark.parametrize("correct", ["A", "AC", "ABD", "ABCDE"])
    @pytest.mark.parametrize("points", [1.0, 2.0, 3.0, 0.7])
    def test_score_when_selection_equals_key_then_exactly_points(self, correct, points):
        score = score_multi_choice(_multi(correct, points), frozenset(correct))

        assert score.earned == points
        assert score.fully_correct

    @pytest.mark.parametrize("correct,selected", [
        ("AC", "B"), ("AC", "BDE"), ("A", "BCDE"), ("ABC", "D"),
    ])
    def test_score_when_no_correct_selected_then_zero(self, correct, selected):
        assert score_multi_choice(_multi(correct), frozenset(selected)).earned == 0.0

    def test_score_when_selection_grows_then_monotone(self):
        """Adding a correct option never lowers the score; adding a wrong one never raises it."""
        key = _multi("ACE", points=3.0)
        options = "ABCDE"
        for size in range(len(options) + 1):
            for combo in itertools.combinations(options, size):
                selected = frozenset(combo)
                base = score_multi_choice(key, selected).earned
                for extra in set(options) - selected:
                    grown = score_multi_choice(key, selected | {extra}).earned
                    if extra in key.correct_set:
                        assert grown >= base
                    else:
                        assert grown <= base

    def test_score_when_uniform_weights_then_matches_unweighted_formula(self):
        """Explicit weight 1 on every option reproduces the count formula."""
        plain = _multi("ABC", points=3.0)
        weighted = _multi("ABC", points=3.0, weights=(("A", 1.0), ("B", 1.0), ("C", 1.0)))
        options = "ABCDE"
        for size in range(len(options) + 1):
            for combo in itertools.combinations(options, size):
                selected = frozenset(combo)
                correct = len(selected & plain.correct_set)
                wrong = len(selected - plain.correct_set)
                expected = max(0.0, (correct - 0.5 * wrong) / 3) * 3.0

                assert score_multi_choice(weighted, selected).earned == pytest.approx(expected)
                assert score_multi_choice(plain, selected).earned == score_multi_choice(weighted, selected).earned

    def test_score_when_weighted_then_weight_share_awarded(self):
        key = _multi("AB", points=4.0, weights=(("A", 3.0), ("B", 1.0)))

        assert score_multi_choice(key, frozenset({"A"})).earned == 3.0
        assert score_multi_choice(key, frozenset({"B"})).earned == 1.0
        # (1 - 0.5) / 4 of 4 points
        assert score_multi_choice(key, frozenset({"B", "C"})).earned == 0.5

    def test_score_when_penalty_configured_then_used(self):
        score = score_multi_choice(_multi("AC"), frozenset({"A", "B"}), wrong_option_penalty=1.0)
        assert score.earned == 0.0

    def test_score_when_penalty_zero_then_wrong_ignored(self):
        score = score_multi_choice(_multi("AC"), frozenset({"A", "B"}), wrong_option_penalty=0.0)
        assert score.earned == 1.0


class TestScoreSingleChoice:
    """Tests for all-or-nothing single choice."""

    def test_score_when_exact_answer_then_full_credit(self):
        score = score_single_choice(_single("B", points=2.0), frozenset({"B"}))

        assert score.earned == 2.0
        assert score.fully_correct
        assert score.explanation == "correct"

    def test_score_when_answer_plus_extra_then_zero(self):
        """Exact set match is required."""
        score = score_single_choice(_single("B"), frozenset({"B", "D"}))

        assert score.earned == 0.0
        assert not score.fully_correct
        assert score.explanation == "expected B, got B,D"

    def test_score_when_empty_then_unanswered(self):
        score = score_single_choice(_single("B"), frozenset())

        assert score.earned == 0.0
        assert score.explanation == "unanswered"

    def test_score_when_key_lists_two_answers_then_only_first_counts(self):
        key = _single("CA")

        assert score_single_choice(key, frozenset({"C"})).fully_correct
        assert score_single_choice(key, frozenset({"A"})).earned == 0.0


class TestScoreQuestion:
    """Tests for format dispatch and QuestionResult construction."""

    def test_score_question_when_multi_choice_then_result_fields(self):
        key = _multi("AC")
        matched = match_responses(
            [key], [DetectedResponse(1, frozenset({"a", "b"}), confidence=Confidence.HIGH)]
        ).matched[0]

        result = score_question(matched, EngineConfig())

        assert result.earned_score == 0.5
        assert result.max_score == 2.0
        assert result.selected_option_ids == ("A", "B")
        assert result.blank_answers == ()
        assert result.confidence is Confidence.HIGH
        assert result.status is ResponseStatus.ANSWERED

    def test_score_question_when_format_mismatch_then_zero_with_reason(self):
        key = _single("B")
        matched = match_responses([key], [DetectedResponse(1, blank_answers=("B",))]).matched[0]

        result = score_question(matched)

        assert result.earned_score == 0.0
        assert result.status is ResponseStatus.FORMAT_MISMATCH
        assert result.explanation.startswith("format mismatch:")

    def test_score_question_when_not_detected_then_no_confidence(self):
        matched = match_responses([_single("B")], []).matched[0]

        result = score_question(matched)

        assert result.confidence is None
        assert result.status is ResponseStatus.UNANSWERED
        assert result.earned_score == 0.0

    def test_score_question_when_fill_in_blank_then_blanks_recorded(self):
        key = AnswerKey(3, QuestionFormat.FILL_IN_BLANK, 2.0,
                        expected_blank_answers=(("Paris",), ("Rome",)))
        matched = match_responses([key], [DetectedResponse(3, blank_answers=("paris ", "Madrid"))]).matched[0]

        result = score_question(matched)

        assert result.earned_score == 1.0
        assert result.blank_answers == ("paris ", "Madrid")
        assert result.selected_option_ids == ()
        assert result.explanation == "1/2 blanks correct"
