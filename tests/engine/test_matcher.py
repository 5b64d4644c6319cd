"""
Unit Tests for the response matcher
"""

import pytest

from answer_engine.core.models import (
    AnswerKey,
    Confidence,
    DetectedResponse,
    QuestionFormat,
    ResponseStatus,
)
from answer_engine.engine.matcher import (
    build_response_index,
    detect_format_mismatch,
    match_responses,
)


@pytest.fixture
def keys():
    return (
        AnswerKey(1, QuestionFormat.SINGLE_CHOICE, 1.0, correct_option_ids=("B",)),
        AnswerKey(2, QuestionFormat.MULTI_CHOICE, 2.0, correct_option_ids=("A", "C")),
        AnswerKey(3, QuestionFormat.FILL_IN_BLANK, 1.0, expected_blank_answers=(("Paris",),)),
    )


class TestBuildResponseIndex:
    def test_index_when_duplicate_numbers_then_first_kept(self):
        first = DetectedResponse(1, frozenset({"A"}))
        second = DetectedResponse(1, frozenset({"B"}))

        index, duplicates = build_response_index([first, second])

        assert index == {1: first}
        assert duplicates == [second]


class TestDetectFormatMismatch:
    def test_mismatch_when_blanks_on_choice_then_scored_as_empty(self, keys):
        mismatch = detect_format_mismatch(keys[0], DetectedResponse(1, blank_answers=("B",)))

        assert mismatch is not None
        assert mismatch.scored_as_empty
        assert mismatch.expected_format is QuestionFormat.SINGLE_CHOICE

    def test_mismatch_when_selections_and_blanks_on_choice_then_kept(self, keys):
        mismatch = detect_format_mismatch(
            keys[1], DetectedResponse(2, frozenset({"A"}), blank_answers=("x",))
        )

        assert mismatch is not None
        assert not mismatch.scored_as_empty

    def test_mismatch_when_selections_on_blank_question_then_reported(self, keys):
        mismatch = detect_format_mismatch(keys[2], DetectedResponse(3, frozenset({"A"})))

        assert mismatch.detail == "option selections on fill_in_blank question"
        assert mismatch.scored_as_empty

    def test_mismatch_when_shape_fits_then_none(self, keys):
        assert detect_format_mismatch(keys[0], DetectedResponse(1, frozenset({"B"}))) is None
        assert detect_format_mismatch(keys[2], DetectedResponse(3, blank_answers=("Paris",))) is None


class TestMatchResponses:
    def test_match_when_question_missing_then_unanswered(self, keys):
        """A skipped question is matched to an empty detection, not an error."""
        result = match_responses(keys, [DetectedResponse(1, frozenset({"B"}))])

        assert [m.key.question_number for m in result.matched] == [1, 2, 3]
        assert result.unanswered_questions == (2, 3)
        assert not result.matched[1].detected
        assert result.matched[1].response.is_empty

    def test_match_when_no_key_for_detection_then_orphan(self, keys):
        orphan = DetectedResponse(99, frozenset({"A"}))

        result = match_responses(keys, [orphan])

        assert result.orphan_responses == (orphan,)
        assert len(result.matched) == 3

    def test_match_when_detections_unsorted_then_ordered_by_key(self, keys):
        responses = [DetectedResponse(3, blank_answers=("Paris",)), DetectedResponse(1, frozenset({"B"}))]

        result = match_responses(tuple(reversed(keys)), responses)

        assert [m.key.question_number for m in result.matched] == [1, 2, 3]
        assert result.matched[0].status is ResponseStatus.ANSWERED
        assert result.matched[2].status is ResponseStatus.ANSWERED

    def test_match_when_foreign_shape_only_then_format_mismatch_status(self, keys):
        result = match_responses(keys, [DetectedResponse(1, blank_answers=("B",), confidence=Confidence.HIGH)])
        matched = result.matched[0]

        assert matched.status is ResponseStatus.FORMAT_MISMATCH
        assert matched.response.is_empty
        assert matched.response.confidence is Confidence.HIGH
        assert result.format_mismatches == (matched.mismatch,)
        assert 1 not in result.unanswered_questions

    def test_match_when_duplicates_then_reported(self, keys):
        result = match_responses(keys, [
            DetectedResponse(2, frozenset({"A"})),
            DetectedResponse(2, frozenset({"C"})),
        ])

        assert result.matched[1].response.selected_option_ids == frozenset({"A"})
        assert [r.selected_option_ids for r in result.duplicate_responses] == [frozenset({"C"})]

    def test_match_when_empty_selection_detected_then_unanswered(self, keys):
        result = match_responses(keys, [DetectedResponse(1)])

        assert result.matched[0].status is ResponseStatus.UNANSWERED
        assert result.matched[0].detected
