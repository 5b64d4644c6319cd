"""
Module: engine

Purpose:
    The evaluation pipeline: turn answer keys and detected responses into
    a deterministic, auditable score.

Key Functions:
    - evaluate_submission(): Main entry point for one submission
    - grade_submission(): Evaluate and store through a repository
    - evaluate_many(): Parallel batch evaluation
    - normalize_answer_keys() / parse_responses(): Input migration

Key Classes:
    - EngineConfig: Penalty, fuzzy threshold, grade table
    - GradeTable: Percentage thresholds to letter grades
    - EvaluationError: Raised when a submission cannot be evaluated
"""

from .config import EngineConfig, GradeTable, load_engine_config
from .normalizer import (
    normalize_answer_key,
    normalize_answer_keys,
    parse_response,
    parse_responses,
)
from .matcher import MatchedQuestion, MatchResult, match_responses
from .grader import aggregate, percentage_of
from .controller import (
    BatchOutcome,
    EvaluationError,
    EvaluationJob,
    EvaluationStage,
    GradingReport,
    compute_evaluation_token,
    evaluate_many,
    evaluate_submission,
    grade_submission,
)

__all__ = [
    # Config
    "EngineConfig",
    "GradeTable",
    "load_engine_config",
    # Normalizer
    "normalize_answer_key",
    "normalize_answer_keys",
    "parse_response",
    "parse_responses",
    # Matcher
    "MatchedQuestion",
    "MatchResult",
    "match_responses",
    # Grader
    "aggregate",
    "percentage_of",
    # Controller
    "BatchOutcome",
    "EvaluationError",
    "EvaluationJob",
    "EvaluationStage",
    "GradingReport",
    "compute_evaluation_token",
    "evaluate_many",
    "evaluate_submission",
    "grade_submission",
]
