"""
Module: response

Purpose:
    Provides the DetectedResponse dataclass - one question's selections
    and blank fills as reported by the external mark-detection capability.

Key Classes:
    - Confidence: high / medium / low detection confidence
    - DetectedResponse: Immutable detected answer for one question
    - InvalidResponse: Raised when a detection record cannot be identified

Used By:
    - engine.normalizer (parse_response)
    - engine.matcher
    - engine.scoring
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Tuple

from .answer_key import canonical_option_id


class InvalidResponse(ValueError):
    """Raised when a detected response has no usable question number."""
    pass


class Confidence(str, Enum):
    """Detection confidence label."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> Confidence:
        """
        Lenient conversion used for noisy detector output.

        Missing values mean MEDIUM; anything unrecognised is LOW.
        """
        if isinstance(value, Confidence):
            return value
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.MEDIUM
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LOW


@dataclass(frozen=True)
class DetectedResponse:
    """
    Detected answer for one question (immutable).

    Attributes:
        question_number: Question this detection claims to answer
        selected_option_ids: Canonical option ids marked by the student;
            empty means unanswered
        blank_answers: Raw detected strings, one per blank position
        confidence: Detector's confidence label
        marking_type: How the mark was drawn (circle, tick, underline...);
            informational only, never used for scoring

    Example:
        >>> r = DetectedResponse(3, frozenset({"a", " c"}))
        >>> sorted(r.selected_option_ids)
        ['A', 'C']
    """

    question_number: int
    selected_option_ids: FrozenSet[str] = frozenset()
    blank_answers: Tuple[str, ...] = ()
    confidence: Confidence = Confidence.MEDIUM
    marking_type: str = "unknown"

    def __post_init__(self) -> None:
        qn = self.question_number
        if isinstance(qn, bool) or not isinstance(qn, int) or qn <= 0:
            raise InvalidResponse(f"question_number must be a positive integer: {qn!r}")

        canonical = frozenset(
            canonical_option_id(o)
            for o in self.selected_option_ids
            if str(o).strip()
        )
        object.__setattr__(self, "selected_option_ids", canonical)
        object.__setattr__(
            self, "blank_answers", tuple("" if a is None else str(a) for a in self.blank_answers)
        )
        object.__setattr__(self, "confidence", Confidence.parse(self.confidence))

    @classmethod
    def unanswered(
        cls,
        question_number: int,
        confidence: Confidence = Confidence.MEDIUM,
    ) -> DetectedResponse:
        """Empty detection used for skipped questions."""
        return cls(question_number=question_number, confidence=confidence)

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def has_selections(self) -> bool:
        return bool(self.selected_option_ids)

    @property
    def has_blank_text(self) -> bool:
        return any(a.strip() for a in self.blank_answers)

    @property
    def is_empty(self) -> bool:
        """True when neither a selection nor any blank text was detected."""
        return not self.has_selections and not self.has_blank_text

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "questionNumber": self.question_number,
            "selectedOptionIds": sorted(self.selected_option_ids),
            "blankAnswers": list(self.blank_answers),
            "confidence": self.confidence.value,
            "markingType": self.marking_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DetectedResponse:
        return cls(
            question_number=data["questionNumber"],
            selected_option_ids=frozenset(data.get("selectedOptionIds", [])),
            blank_answers=tuple(data.get("blankAnswers", [])),
            confidence=Confidence.parse(data.get("confidence")),
            marking_type=data.get("markingType", "unknown"),
        )
