"""
Module: engine.controller

Purpose:
    Orchestrate the evaluation of one submission.
    Received → Normalized → Matched → Scored → Aggregated → Complete

    Each pass is a pure function of (answer keys, detections, config):
    no I/O, no shared mutable state, and identical inputs give a
    bit-identical result and the same evaluation token. A failure at any
    step discards everything built so far and raises one EvaluationError;
    no partial SubmissionResult ever leaves this module.

Key Functions:
    - evaluate_submission(): Main entry point for one submission
    - grade_submission(): Load keys from a repository, evaluate, write once
    - evaluate_many(): Evaluate independent submissions in parallel
    - compute_evaluation_token(): sha256 of the normalized inputs + config

Key Classes:
    - EvaluationStage: Pipeline state
    - EvaluationError: Exception for evaluation failures
    - GradingReport: Outcome of grade_submission()
    - EvaluationJob / BatchOutcome: evaluate_many() input and output

Dependencies:
    - engine.normalizer, engine.matcher, engine.scoring, engine.grader
    - storage.repository: SubmissionRepository (grade_submission only)

Used By:
    - cli
"""

from __future__ import annotations

import hashlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from answer_engine.core.models import (
    AnswerKey,
    DetectedResponse,
    Diagnostics,
    Evaluation,
    InvalidAnswerKey,
    SubmissionIdentity,
)
from answer_engine.core.utils import canonical_json
from answer_engine.storage.repository import SaveOutcome, SubmissionRepository

from .config import EngineConfig
from .grader import aggregate
from .matcher import MatchResult, match_responses
from .normalizer import normalize_answer_keys, parse_responses
from .scoring import score_all

logger = logging.getLogger(__name__)

AnswerKeyInput = Union[Mapping[str, Any], AnswerKey]
ResponseInput = Union[Mapping[str, Any], DetectedResponse]


class EvaluationStage(str, Enum):
    """State of one evaluation pass."""
    RECEIVED = "received"
    NORMALIZED = "normalized"
    MATCHED = "matched"
    SCORED = "scored"
    AGGREGATED = "aggregated"
    COMPLETE = "complete"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class EvaluationError(Exception):
    """
    Evaluation of a submission failed; no result was produced.

    Attributes:
        stage: Last stage reached before the failure (RECEIVED means the
            inputs could not be normalized)
        state: Terminal state of the pass, always FAILED
        question_number: Offending question, when the cause names one
    """

    state = EvaluationStage.FAILED

    def __init__(
        self,
        message: str,
        stage: EvaluationStage,
        question_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.question_number = question_number


# ─────────────────────────────────────────────────────────────────────────────
# Single Submission
# ─────────────────────────────────────────────────────────────────────────────

def compute_evaluation_token(
    answer_keys: Sequence[AnswerKey],
    responses: Sequence[DetectedResponse],
    config: EngineConfig,
) -> str:
    """
    Deterministic token for an evaluation's inputs.

    Keys are taken in question order. Detections are ordered by question
    number with input order kept among duplicates, since the first
    duplicate is the one scored.
    """
    payload = {
        "answerKeys": [k.to_dict() for k in sorted(answer_keys, key=lambda k: k.question_number)],
        "responses": [
            r.to_dict() for r in sorted(responses, key=lambda r: r.question_number)
        ],
        "config": config.to_dict(),
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def _build_diagnostics(match: MatchResult, config: EngineConfig) -> Diagnostics:
    low_confidence = tuple(
        m.key.question_number
        for m in match.matched
        if m.detected and m.response.confidence in config.low_confidence_levels
    )
    return Diagnostics(
        orphan_responses=match.orphan_responses,
        unanswered_questions=match.unanswered_questions,
        duplicate_responses=match.duplicate_responses,
        format_mismatches=match.format_mismatches,
        low_confidence_questions=low_confidence,
    )


def evaluate_submission(
    answer_keys: Iterable[AnswerKeyInput],
    responses: Iterable[ResponseInput],
    config: Optional[EngineConfig] = None,
) -> Evaluation:
    """
    Evaluate one submission from start to finish.

    Pipeline:
    1. Normalize answer keys and parse detections
    2. Match detections to keys by question number
    3. Score every key
    4. Aggregate into a SubmissionResult
    5. Collect diagnostics and compute the evaluation token

    Args:
        answer_keys: Raw question records or AnswerKey objects
        responses: Raw detection records or DetectedResponse objects
        config: Engine configuration; defaults when None

    Returns:
        Complete Evaluation

    Raises:
        EvaluationError: If any step fails; fail-fast on the first
            invalid answer key

    Example:
        >>> evaluation = evaluate_submission(
        ...     [{"question_number": 1, "correct_options": ["A", "C"], "points": 2}],
        ...     [{"question": 1, "selectedOptions": ["A"], "confidence": "high"}],
        ... )
        >>> evaluation.result.total_score
        1.0
    """
    config = config or EngineConfig()
    stage = EvaluationStage.RECEIVED
    start_time = time.perf_counter()

    try:
        keys = normalize_answer_keys(answer_keys, validate=config.validate_payloads)
        detections = parse_responses(responses, validate=config.validate_payloads)
        stage = EvaluationStage.NORMALIZED
        if not keys:
            logger.warning("Evaluating a submission with no answer keys; max score is 0")

        match = match_responses(keys, detections)
        stage = EvaluationStage.MATCHED

        question_results = score_all(match.matched, config)
        stage = EvaluationStage.SCORED

        result = aggregate(question_results, config.grade_table)
        stage = EvaluationStage.AGGREGATED

        diagnostics = _build_diagnostics(match, config)
        token = compute_evaluation_token(keys, detections, config)
        stage = EvaluationStage.COMPLETE
    except (ValueError, TypeError, KeyError) as e:
        question_number = e.question_number if isinstance(e, InvalidAnswerKey) else None
        logger.error(f"Evaluation failed after stage '{stage}': {e}")
        logger.debug(f"{stage} -> {EvaluationStage.FAILED}")
        raise EvaluationError(
            f"Evaluation failed after stage '{stage}': {e}",
            stage=stage,
            question_number=question_number,
        ) from e

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"Evaluation {stage}: {result.question_count} questions, {result.total_score}/{result.max_score} "
        f"({result.percentage:.1f}%, {result.grade}) in {elapsed * 1000:.1f}ms"
    )
    if diagnostics.has_issues:
        logger.info(
            f"Diagnostics: {len(diagnostics.orphan_responses)} orphan, "
            f"{len(diagnostics.duplicate_responses)} duplicate, "
            f"{len(diagnostics.format_mismatches)} format mismatch, "
            f"{len(diagnostics.low_confidence_questions)} low confidence"
        )

    return Evaluation(result=result, diagnostics=diagnostics, evaluation_token=token)


# ─────────────────────────────────────────────────────────────────────────────
# Persistence
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GradingReport:
    """
    Outcome of grade_submission() (immutable).

    Attributes:
        identity: Submission that was graded
        evaluation: The evaluation that was computed
        outcome: What the repository did with it
    """
    identity: SubmissionIdentity
    evaluation: Evaluation
    outcome: SaveOutcome


def grade_submission(
    repository: SubmissionRepository,
    identity: SubmissionIdentity,
    responses: Iterable[ResponseInput],
    config: Optional[EngineConfig] = None,
) -> GradingReport:
    """
    Load a paper's keys, evaluate a submission, and store the result once.

    Nothing is written when evaluation fails. Re-grading the same inputs
    reports UNCHANGED; re-grading changed inputs replaces the stored
    result.

    Raises:
        RepositoryError: If the keys cannot be loaded or the result not saved
        EvaluationError: If evaluation fails
    """
    answer_keys = repository.load_answer_keys(identity.paper_id)
    evaluation = evaluate_submission(answer_keys, responses, config)
    outcome = repository.save_result(identity, evaluation)
    logger.info(f"{identity.label}: result {outcome}")
    return GradingReport(identity=identity, evaluation=evaluation, outcome=outcome)


# ─────────────────────────────────────────────────────────────────────────────
# Batches
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EvaluationJob:
    """One submission to evaluate in a batch."""
    job_id: str
    answer_keys: Tuple[AnswerKeyInput, ...]
    responses: Tuple[ResponseInput, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "answer_keys", tuple(self.answer_keys))
        object.__setattr__(self, "responses", tuple(self.responses))


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one batch job: an evaluation or the error that prevented it."""
    job_id: str
    evaluation: Optional[Evaluation] = None
    error: Optional[EvaluationError] = None

    @property
    def ok(self) -> bool:
        return self.evaluation is not None

    @property
    def state(self) -> EvaluationStage:
        return EvaluationStage.COMPLETE if self.ok else EvaluationStage.FAILED


def _run_job(job: EvaluationJob, config: EngineConfig) -> BatchOutcome:
    try:
        return BatchOutcome(job.job_id, evaluation=evaluate_submission(job.answer_keys, job.responses, config))
    except EvaluationError as e:
        return BatchOutcome(job.job_id, error=e)


def evaluate_many(
    jobs: Iterable[EvaluationJob],
    config: Optional[EngineConfig] = None,
    max_workers: int = 4,
) -> List[BatchOutcome]:
    """
    Evaluate independent submissions in parallel.

    Submissions share nothing mutable, so a thread pool is enough. One
    failing submission yields an error outcome and never affects the
    others.

    Returns:
        One BatchOutcome per job, in input order
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1: {max_workers}")
    config = config or EngineConfig()
    jobs = list(jobs)
    if not jobs:
        return []

    if len(jobs) == 1:
        outcomes = [_run_job(jobs[0], config)]
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(jobs))) as pool:
            futures = [pool.submit(_run_job, job, config) for job in jobs]
            outcomes = [future.result() for future in futures]

    failed = sum(1 for o in outcomes if not o.ok)
    logger.info(f"Batch evaluated {len(outcomes)} submissions, {failed} failed")
    return outcomes
