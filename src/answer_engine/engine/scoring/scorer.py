"""
Module: engine.scoring.scorer

Purpose:
    Dispatch a matched (key, response) pair to its format's scoring rule
    and wrap the outcome in a QuestionResult.

Key Functions:
    - score_question(): One MatchedQuestion -> QuestionResult
    - score_all(): Every MatchedQuestion of a submission, order kept
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from answer_engine.core.models import QuestionFormat, QuestionResult, ResponseStatus
from answer_engine.engine.config import EngineConfig
from answer_engine.engine.matcher import MatchedQuestion

from .blanks import score_fill_in_blank
from .choice import Score, score_multi_choice, score_single_choice

logger = logging.getLogger(__name__)


def score_question(
    matched: MatchedQuestion,
    config: Optional[EngineConfig] = None,
) -> QuestionResult:
    """
    Score one question.

    A detection discarded as a format mismatch scores 0 with a
    "format mismatch: ..." explanation. Everything else goes to the rule
    for the key's declared format.

    Args:
        matched: Key and response from the matcher
        config: Penalty and fuzzy threshold; defaults when None

    Returns:
        QuestionResult with 0 <= earned_score <= key.points
    """
    config = config or EngineConfig()
    key = matched.key
    response = matched.response
    fmt = key.format

    if matched.status is ResponseStatus.FORMAT_MISMATCH:
        detail = matched.mismatch.detail if matched.mismatch else "unexpected shape"
        score = Score(0.0, False, f"format mismatch: {detail}")
    elif fmt is QuestionFormat.SINGLE_CHOICE:
        score = score_single_choice(key, response.selected_option_ids)
    elif fmt is QuestionFormat.MULTI_CHOICE:
        score = score_multi_choice(
            key, response.selected_option_ids, config.wrong_option_penalty
        )
    else:
        score = score_fill_in_blank(key, response.blank_answers, config.fuzzy_threshold)

    logger.debug(f"Q{key.question_number} [{fmt}]: {score.earned}/{key.points} ({score.explanation})")

    return QuestionResult(
        question_number=key.question_number,
        format=fmt,
        earned_score=score.earned,
        max_score=float(key.points),
        is_fully_correct=score.fully_correct,
        explanation=score.explanation,
        status=matched.status,
        selected_option_ids=tuple(sorted(response.selected_option_ids)) if fmt.is_choice else (),
        blank_answers=() if fmt.is_choice else tuple(response.blank_answers),
        confidence=response.confidence if matched.detected else None,
    )


def score_all(
    matched: Iterable[MatchedQuestion],
    config: Optional[EngineConfig] = None,
) -> Tuple[QuestionResult, ...]:
    config = config or EngineConfig()
    return tuple(score_question(m, config) for m in matched)
