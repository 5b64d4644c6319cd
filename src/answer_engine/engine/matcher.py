"""
Module: engine.matcher

Purpose:
    Align detected responses with answer keys by question number.

    Every answer key gets exactly one MatchedQuestion. Keys with no
    detection are matched to an empty response (a skipped question, not
    an error). Detections with no key are collected as orphans, and a
    second detection for the same question is kept aside as a duplicate;
    the first one read wins.

Key Functions:
    - build_response_index(): question number -> first DetectedResponse
    - detect_format_mismatch(): Shape check of a detection against its key
    - match_responses(): Full alignment for one submission

Used By:
    - engine.controller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from answer_engine.core.models import (
    AnswerKey,
    DetectedResponse,
    FormatMismatch,
    QuestionFormat,
    ResponseStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchedQuestion:
    """
    One answer key paired with the response that will be scored for it.

    Attributes:
        key: The answer key
        response: Detection to score; an empty detection when the question
            was skipped or its detection was discarded
        status: How the detection was treated
        mismatch: Set when the detection's shape did not fit the key
        detected: Whether any detection existed for the question
    """
    key: AnswerKey
    response: DetectedResponse
    status: ResponseStatus
    mismatch: Optional[FormatMismatch] = None
    detected: bool = True


@dataclass(frozen=True)
class MatchResult:
    """Output of match_responses() for one submission."""
    matched: Tuple[MatchedQuestion, ...]
    orphan_responses: Tuple[DetectedResponse, ...] = ()
    duplicate_responses: Tuple[DetectedResponse, ...] = ()

    @property
    def unanswered_questions(self) -> Tuple[int, ...]:
        return tuple(
            m.key.question_number
            for m in self.matched
            if m.status is ResponseStatus.UNANSWERED
        )

    @property
    def format_mismatches(self) -> Tuple[FormatMismatch, ...]:
        return tuple(m.mismatch for m in self.matched if m.mismatch is not None)


def build_response_index(
    responses: Iterable[DetectedResponse],
) -> Tuple[Dict[int, DetectedResponse], List[DetectedResponse]]:
    """
    Index detections by question number.

    Returns:
        (index, duplicates) where the index holds the first detection per
        question number and duplicates holds every later one, in input order
    """
    index: Dict[int, DetectedResponse] = {}
    duplicates: List[DetectedResponse] = []
    for response in responses:
        if response.question_number in index:
            duplicates.append(response)
            continue
        index[response.question_number] = response
    return index, duplicates


def detect_format_mismatch(
    key: AnswerKey,
    response: DetectedResponse,
) -> Optional[FormatMismatch]:
    """
    Check whether a detection carries data of the wrong shape for its key.

    A detection holding only the foreign shape (blank text for a choice
    question, selections for a fill-in-blank question) is scored as empty.
    A detection holding both shapes keeps the part that fits.

    Returns:
        FormatMismatch, or None when the shape fits
    """
    if key.format.is_choice:
        if not response.has_blank_text:
            return None
        return FormatMismatch(
            question_number=key.question_number,
            expected_format=key.format,
            detail=f"blank answers on {key.format.value} question",
            scored_as_empty=not response.has_selections,
        )

    if not response.has_selections:
        return None
    return FormatMismatch(
        question_number=key.question_number,
        expected_format=QuestionFormat.FILL_IN_BLANK,
        detail="option selections on fill_in_blank question",
        scored_as_empty=not response.has_blank_text,
    )


def _classify(key: AnswerKey, response: DetectedResponse) -> MatchedQuestion:
    mismatch = detect_format_mismatch(key, response)
    if mismatch is not None and mismatch.scored_as_empty:
        logger.warning(
            f"Q{key.question_number}: {mismatch.detail}; scoring as unanswered"
        )
        return MatchedQuestion(
            key=key,
            response=DetectedResponse.unanswered(key.question_number, response.confidence),
            status=ResponseStatus.FORMAT_MISMATCH,
            mismatch=mismatch,
        )
    if mismatch is not None:
        logger.warning(f"Q{key.question_number}: {mismatch.detail}; ignoring the extra data")

    relevant_empty = (
        not response.has_selections if key.format.is_choice else not response.has_blank_text
    )
    status = ResponseStatus.UNANSWERED if relevant_empty else ResponseStatus.ANSWERED
    return MatchedQuestion(key=key, response=response, status=status, mismatch=mismatch)


def match_responses(
    answer_keys: Sequence[AnswerKey],
    responses: Sequence[DetectedResponse],
) -> MatchResult:
    """
    Align a submission's detections with its answer keys.

    Args:
        answer_keys: Normalized keys with unique question numbers
        responses: Detections in any order, possibly incomplete

    Returns:
        MatchResult with one MatchedQuestion per key, ordered by question
        number, plus orphan and duplicate detections

    Example:
        >>> result = match_responses(keys, [DetectedResponse(99, frozenset({"A"}))])
        >>> [r.question_number for r in result.orphan_responses]
        [99]
    """
    index, duplicates = build_response_index(responses)
    key_numbers = {key.question_number for key in answer_keys}

    matched = []
    for key in sorted(answer_keys, key=lambda k: k.question_number):
        response = index.get(key.question_number)
        if response is None:
            matched.append(
                MatchedQuestion(
                    key=key,
                    response=DetectedResponse.unanswered(key.question_number),
                    status=ResponseStatus.UNANSWERED,
                    detected=False,
                )
            )
            continue
        matched.append(_classify(key, response))

    orphans = tuple(r for r in index.values() if r.question_number not in key_numbers)
    if orphans:
        logger.warning(
            f"{len(orphans)} detected responses have no answer key: "
            f"{[r.question_number for r in orphans]}"
        )
    if duplicates:
        logger.warning(
            f"{len(duplicates)} duplicate detections ignored for questions "
            f"{[r.question_number for r in duplicates]}"
        )

    return MatchResult(
        matched=tuple(matched),
        orphan_responses=orphans,
        duplicate_responses=tuple(duplicates),
    )
