"""
Module: engine.grader

Purpose:
    Aggregate per-question results into a SubmissionResult with totals,
    percentage and letter grade. This is the only place a
    SubmissionResult is constructed, and it is always built whole.

Key Functions:
    - percentage_of(): 100 * total / max, 0 for an empty paper
    - aggregate(): Question results -> SubmissionResult
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

from answer_engine.core.models import QuestionResult, SubmissionResult

from .config import GradeTable


def percentage_of(total_score: float, max_score: float) -> float:
    """Percentage score; an empty paper (max_score 0) is 0%, not an error."""
    if max_score <= 0:
        return 0.0
    return 100.0 * total_score / max_score


def aggregate(
    question_results: Iterable[QuestionResult],
    grade_table: Optional[GradeTable] = None,
) -> SubmissionResult:
    """
    Build the SubmissionResult for one submission.

    Args:
        question_results: One result per answer key
        grade_table: Percentage thresholds; the default table when None

    Returns:
        SubmissionResult ordered by question number

    Example:
        >>> result = aggregate(results)  # earned [2, 0.5, 0] of 2 each
        >>> result.total_score, result.max_score, result.grade
        (2.5, 6.0, 'D')
    """
    grade_table = grade_table or GradeTable()
    ordered = tuple(sorted(question_results, key=lambda r: r.question_number))

    total_score = math.fsum(r.earned_score for r in ordered)
    max_score = math.fsum(r.max_score for r in ordered)
    percentage = percentage_of(total_score, max_score)

    return SubmissionResult(
        question_results=ordered,
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        grade=grade_table.grade_for(percentage),
    )
