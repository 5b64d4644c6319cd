"""
Unit Tests for the evaluation orchestrator

Covers the end-to-end pipeline, idempotence, fail-fast behaviour,
diagnostics, repository writes and parallel batches.
"""

import pytest

from answer_engine.core.models import (
    AnswerKey,
    Confidence,
    DetectedResponse,
    QuestionFormat,
    ResponseStatus,
    SubmissionIdentity,
)
from answer_engine.engine import (
    EngineConfig,
    EvaluationError,
    EvaluationJob,
    EvaluationStage,
    compute_evaluation_token,
    evaluate_many,
    evaluate_submission,
    grade_submission,
)
from answer_engine.storage import InMemoryRepository, PaperNotFoundError, SaveOutcome


class TestEvaluateSubmission:
    """Tests for evaluate_submission()."""

    def test_evaluate_when_sample_paper_then_scores_and_grade(self, paper_records, detected_records):
        # Act
        evaluation = evaluate_submission(paper_records, detected_records)
        result = evaluation.result

        # Assert
        assert [r.earned_score for r in result.question_results] == [2.0, 0.5, 0.0]
        assert result.total_score == 2.5
        assert result.max_score == 6.0
        assert result.percentage == pytest.approx(41.67, abs=0.01)
        assert result.grade == "D"
        assert result.question_results[1].explanation == "1/2 correct, 1 wrong"

    def test_evaluate_when_run_twice_then_bit_identical(self, paper_records, detected_records):
        first = evaluate_submission(paper_records, detected_records)
        second = evaluate_submission(paper_records, detected_records)

        assert first == second
        assert first.to_dict() == second.to_dict()
        assert first.evaluation_token == second.evaluation_token

    def test_evaluate_when_response_order_changes_then_same_token(self, paper_records, detected_records):
        first = evaluate_submission(paper_records, detected_records)
        second = evaluate_submission(list(reversed(paper_records)), list(reversed(detected_records)))

        assert first.result == second.result
        assert first.evaluation_token == second.evaluation_token

    def test_evaluate_when_response_changes_then_token_changes(self, paper_records, detected_records):
        changed = [dict(detected_records[0], selected_option="C")] + detected_records[1:]

        first = evaluate_submission(paper_records, detected_records)
        second = evaluate_submission(paper_records, changed)

        assert first.evaluation_token != second.evaluation_token
        assert second.result.total_score == 0.5

    def test_evaluate_when_config_changes_then_token_changes(self, paper_records, detected_records):
        default = evaluate_submission(paper_records, detected_records)
        strict = evaluate_submission(
            paper_records, detected_records, EngineConfig(wrong_option_penalty=1.0)
        )

        assert default.evaluation_token != strict.evaluation_token
        assert strict.result.get(2).earned_score == 0.0

    def test_evaluate_when_model_objects_given_then_accepted(self):
        keys = [AnswerKey(1, QuestionFormat.SINGLE_CHOICE, 1.0, correct_option_ids=("A",))]
        responses = [DetectedResponse(1, frozenset({"A"}))]

        evaluation = evaluate_submission(keys, responses)

        assert evaluation.result.percentage == 100.0
        assert evaluation.result.grade == "A+"

    def test_evaluate_when_percentage_on_threshold_then_threshold_grade(self):
        keys = [{"question_number": 1, "correct_options": ["A", "B", "C", "D", "E"], "points": 3}]
        responses = [{"question": 1, "selected_options": ["A", "B", "C"]}]

        result = evaluate_submission(keys, responses).result

        assert result.total_score == 1.8
        assert result.percentage == 60.0
        assert result.grade == "B"

    def test_evaluate_when_invalid_key_then_error_and_no_result(self, paper_records, detected_records):
        """A bad key aborts the whole submission."""
        # Arrange
        bad = paper_records + [{"question_number": 4, "correct_option": "A", "points": 0}]

        # Act & Assert
        with pytest.raises(EvaluationError) as exc_info:
            evaluate_submission(bad, detected_records)

        assert exc_info.value.stage is EvaluationStage.RECEIVED
        assert exc_info.value.state is EvaluationStage.FAILED
        assert exc_info.value.question_number == 4
        assert exc_info.value.__cause__ is not None

    def test_evaluate_when_response_unidentifiable_then_error(self, paper_records):
        with pytest.raises(EvaluationError):
            evaluate_submission(paper_records, [{"selected_option": "A"}])

    def test_evaluate_when_no_answer_keys_then_zero_percent(self):
        evaluation = evaluate_submission([], [{"question": 1, "selected_option": "A"}])

        assert evaluation.result.max_score == 0.0
        assert evaluation.result.percentage == 0.0
        assert len(evaluation.diagnostics.orphan_responses) == 1


class TestDiagnostics:
    """Tests for the diagnostics attached to an evaluation."""

    def test_diagnostics_when_orphans_and_skips_then_reported(self, paper_records):
        responses = [
            {"question": 1, "selected_option": "B"},
            {"question": 42, "selected_option": "A"},
        ]

        evaluation = evaluate_submission(paper_records, responses)
        diagnostics = evaluation.diagnostics

        assert [r.question_number for r in diagnostics.orphan_responses] == [42]
        assert diagnostics.unanswered_questions == (2, 3)
        assert evaluation.result.question_count == 3

    def test_diagnostics_when_low_confidence_then_listed(self, paper_records, detected_records):
        evaluation = evaluate_submission(paper_records, detected_records)
        assert evaluation.diagnostics.low_confidence_questions == (3,)

    def test_diagnostics_when_medium_configured_low_then_listed(self, paper_records, detected_records):
        config = EngineConfig(low_confidence_levels=frozenset({Confidence.LOW, Confidence.MEDIUM}))

        evaluation = evaluate_submission(paper_records, detected_records, config)

        assert evaluation.diagnostics.low_confidence_questions == (2, 3)

    def test_diagnostics_when_blanks_on_choice_question_then_mismatch(self, paper_records):
        responses = [{"question": 1, "blankAnswers": ["B"]}]

        evaluation = evaluate_submission(paper_records, responses)
        q1 = evaluation.result.get(1)

        assert q1.status is ResponseStatus.FORMAT_MISMATCH
        assert q1.earned_score == 0.0
        assert evaluation.diagnostics.format_mismatches[0].question_number == 1

    def test_diagnostics_when_duplicate_detection_then_first_scored(self, paper_records):
        responses = [
            {"question": 1, "selected_option": "B"},
            {"question": 1, "selected_option": "C"},
        ]

        evaluation = evaluate_submission(paper_records, responses)

        assert evaluation.result.get(1).is_fully_correct
        assert len(evaluation.diagnostics.duplicate_responses) == 1


class TestComputeEvaluationToken:
    def test_token_when_computed_then_sha256_hex(self):
        keys = [AnswerKey(1, QuestionFormat.SINGLE_CHOICE, 1.0, correct_option_ids=("A",))]

        token = compute_evaluation_token(keys, [], EngineConfig())

        assert len(token) == 64
        assert all(c in "0123456789abcdef" for c in token)


class TestGradeSubmission:
    """Tests for grade_submission() against the in-memory repository."""

    @pytest.fixture
    def repository(self, paper_records):
        return InMemoryRepository({"paper-1": paper_records})

    def test_grade_when_first_time_then_created(self, repository, detected_records):
        identity = SubmissionIdentity("paper-1", "roll-7")

        report = grade_submission(repository, identity, detected_records)

        assert report.outcome is SaveOutcome.CREATED
        stored = repository.get_result(identity)
        assert stored.revision == 1
        assert stored.result == report.evaluation.result

    def test_grade_when_repeated_then_unchanged_and_single_record(self, repository, detected_records):
        identity = SubmissionIdentity("paper-1", "roll-7")

        grade_submission(repository, identity, detected_records)
        report = grade_submission(repository, identity, detected_records)

        assert report.outcome is SaveOutcome.UNCHANGED
        assert len(repository) == 1
        assert repository.get_result(identity).revision == 1

    def test_grade_when_responses_change_then_replaced(self, repository, detected_records):
        identity = SubmissionIdentity("paper-1", "roll-7")

        grade_submission(repository, identity, detected_records)
        report = grade_submission(repository, identity, detected_records[:1])

        assert report.outcome is SaveOutcome.REPLACED
        assert len(repository) == 1
        assert repository.get_result(identity).revision == 2
        assert repository.get_result(identity).result.total_score == 2.0

    def test_grade_when_evaluation_fails_then_nothing_written(self, repository):
        identity = SubmissionIdentity("paper-1", "roll-7")

        with pytest.raises(EvaluationError):
            grade_submission(repository, identity, [{"selected_option": "A"}])

        assert repository.get_result(identity) is None

    def test_grade_when_paper_unknown_then_raises(self, repository, detected_records):
        with pytest.raises(PaperNotFoundError):
            grade_submission(repository, SubmissionIdentity("paper-9", "roll-7"), detected_records)


class TestEvaluateMany:
    """Tests for parallel batch evaluation."""

    def test_evaluate_many_when_one_fails_then_others_complete(self, paper_records, detected_records):
        jobs = [
            EvaluationJob("good-1", paper_records, detected_records),
            EvaluationJob("bad", paper_records, [{"selected_option": "A"}]),
            EvaluationJob("good-2", paper_records, detected_records[:1]),
        ]

        outcomes = evaluate_many(jobs, max_workers=3)

        assert [o.job_id for o in outcomes] == ["good-1", "bad", "good-2"]
        assert [o.ok for o in outcomes] == [True, False, True]
        assert [o.state for o in outcomes] == [
            EvaluationStage.COMPLETE, EvaluationStage.FAILED, EvaluationStage.COMPLETE,
        ]
        assert isinstance(outcomes[1].error, EvaluationError)
        assert outcomes[0].evaluation.result.total_score == 2.5
        assert outcomes[2].evaluation.result.total_score == 2.0

    def test_evaluate_many_when_parallel_then_matches_sequential(self, paper_records, detected_records):
        jobs = [EvaluationJob(str(i), paper_records, detected_records) for i in range(8)]

        outcomes = evaluate_many(jobs, max_workers=4)
        expected = evaluate_submission(paper_records, detected_records)

        assert all(o.evaluation == expected for o in outcomes)

    def test_evaluate_many_when_no_jobs_then_empty(self):
        assert evaluate_many([]) == []

    def test_evaluate_many_when_zero_workers_then_raises(self):
        with pytest.raises(ValueError, match="max_workers"):
            evaluate_many([], max_workers=0)
