"""
Module: engine.scoring.blanks

Purpose:
    Fill-in-blank comparison and scoring.

    Each blank is compared with its own list of acceptable answers using
    the blank's match mode. Comparison is always trimmed and
    case-insensitive. Text the detector could not read ("illegible") and
    empty text never match.

Key Functions:
    - normalize_blank_text(): Comparison form of a string
    - blank_matches(): Compare one detected blank with its alternatives
    - score_fill_in_blank(): Proportional credit per matched blank
"""

from __future__ import annotations

import logging
from difflib import SequenceMatcher
from typing import Sequence

from answer_engine.core.models import AnswerKey, BlankMatchMode

from .choice import Score

logger = logging.getLogger(__name__)

ILLEGIBLE = "illegible"


def normalize_blank_text(text: str) -> str:
    """Trimmed, lower-cased text with inner whitespace collapsed."""
    return " ".join(str(text).split()).lower()


def similarity(a: str, b: str) -> float:
    """
    Similarity ratio in [0, 1] of two normalized strings.

    This is difflib's matching-blocks ratio, 2 * matches / (len(a) + len(b)),
    not a Levenshtein ratio 1 - distance / max(len). The two disagree near
    the threshold: "colour" vs "color" is 0.909 here and 0.833 by edit
    distance, so a 0.8 threshold accepts a slightly different set of
    strings than an edit-distance matcher would.
    """
    return SequenceMatcher(None, a, b).ratio()


def blank_matches(
    detected: str,
    alternatives: Sequence[str],
    mode: BlankMatchMode = BlankMatchMode.EXACT,
    fuzzy_threshold: float = 0.8,
) -> bool:
    """
    Check one detected blank against its acceptable answers.

    Args:
        detected: Raw detected string
        alternatives: Acceptable answers for this blank
        mode: EXACT equality, CONTAINS either way, or FUZZY similarity
        fuzzy_threshold: Minimum ratio for FUZZY

    Example:
        >>> blank_matches(" Paris ", ["paris"])
        True
        >>> blank_matches("photosynthsis", ["photosynthesis"], BlankMatchMode.FUZZY)
        True
    """
    answer = normalize_blank_text(detected)
    if not answer or answer == ILLEGIBLE:
        return False

    for alternative in alternatives:
        expected = normalize_blank_text(alternative)
        if not expected:
            continue
        if answer == expected:
            return True
        if mode is BlankMatchMode.CONTAINS and (expected in answer or answer in expected):
            return True
        if mode is BlankMatchMode.FUZZY and similarity(answer, expected) >= fuzzy_threshold:
            return True
    return False


def score_fill_in_blank(
    key: AnswerKey,
    blank_answers: Sequence[str],
    fuzzy_threshold: float = 0.8,
) -> Score:
    """
    Score a fill_in_blank question.

    Each matching blank earns points / blank_count. Missing detected
    blanks do not match; detected blanks beyond the key's count are
    ignored.
    """
    total = key.blank_count
    matched = 0
    for position, (alternatives, mode) in enumerate(
        zip(key.expected_blank_answers, key.blank_match_modes)
    ):
        detected = blank_answers[position] if position < len(blank_answers) else ""
        if blank_matches(detected, alternatives, mode, fuzzy_threshold):
            matched += 1
        else:
            logger.debug(
                f"Q{key.question_number} blank {position + 1}: {detected!r} not in {list(alternatives)}"
            )

    if len(blank_answers) > total:
        logger.debug(
            f"Q{key.question_number}: ignoring {len(blank_answers) - total} extra detected blanks"
        )

    fully_correct = matched == total
    earned = float(key.points) if fully_correct else key.points * matched / total
    return Score(earned, fully_correct, f"{matched}/{total} blanks correct")
