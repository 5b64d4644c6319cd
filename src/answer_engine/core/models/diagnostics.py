"""
Module: diagnostics

Non-fatal findings produced alongside a SubmissionResult: orphan and
duplicate detections, skipped questions, format mismatches and
low-confidence reads. Nothing here affects the score; it is surfaced so
the surrounding service can tell data-setup problems apart from
detection-quality problems.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .answer_key import QuestionFormat
from .response import DetectedResponse


@dataclass(frozen=True)
class FormatMismatch:
    """
    A detection whose shape does not fit its key's declared format.

    Fields:
    - question_number: Question the detection was matched to
    - expected_format: Format declared by the answer key
    - detail: e.g. "blank answers on choice question"
    - scored_as_empty: True when the whole detection was discarded
    """
    question_number: int
    expected_format: QuestionFormat
    detail: str
    scored_as_empty: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionNumber": self.question_number,
            "expectedFormat": self.expected_format.value,
            "detail": self.detail,
            "scoredAsEmpty": self.scored_as_empty,
        }


@dataclass(frozen=True)
class Diagnostics:
    """Diagnostic output of one evaluation (immutable)."""

    orphan_responses: Tuple[DetectedResponse, ...] = ()
    unanswered_questions: Tuple[int, ...] = ()
    duplicate_responses: Tuple[DetectedResponse, ...] = ()
    format_mismatches: Tuple[FormatMismatch, ...] = ()
    low_confidence_questions: Tuple[int, ...] = ()

    @property
    def has_issues(self) -> bool:
        return bool(
            self.orphan_responses
            or self.duplicate_responses
            or self.format_mismatches
            or self.low_confidence_questions
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orphanResponses": [r.to_dict() for r in self.orphan_responses],
            "unansweredQuestions": list(self.unanswered_questions),
            "duplicateResponses": [r.to_dict() for r in self.duplicate_responses],
            "formatMismatches": [m.to_dict() for m in self.format_mismatches],
            "lowConfidenceQuestions": list(self.low_confidence_questions),
        }
