"""
Module: answer_key

Purpose:
    Provides the AnswerKey dataclass - the canonical, validated expected
    answer for one question. Every legacy question shape is
    migrated into this type once, by the normalizer, and never downstream.

Key Classes:
    - QuestionFormat: single_choice / multi_choice / fill_in_blank
    - BlankMatchMode: exact / contains / fuzzy comparison for one blank
    - AnswerKey: Immutable answer key with invariants checked on construction
    - InvalidAnswerKey: Raised for malformed or under-specified keys

Dependencies:
    - dataclasses (std)
    - enum (std)
    - functools (std)

Used By:
    - engine.normalizer
    - engine.matcher
    - engine.scoring
    - core.utils.serialization
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Dict, FrozenSet, Optional, Tuple


class QuestionFormat(str, Enum):
    """Declared answer format of a question."""
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"
    FILL_IN_BLANK = "fill_in_blank"

    def __str__(self) -> str:
        return self.value

    @property
    def is_choice(self) -> bool:
        """True for the two option-selection formats."""
        return self is not QuestionFormat.FILL_IN_BLANK


class BlankMatchMode(str, Enum):
    """How a detected blank is compared with its acceptable answers."""
    EXACT = "exact"        # Trimmed, case-insensitive equality
    CONTAINS = "contains"  # Either string contains the other
    FUZZY = "fuzzy"        # Similarity ratio at or above a threshold

    def __str__(self) -> str:
        return self.value


class InvalidAnswerKey(ValueError):
    """Raised when an answer key is malformed or offers no way to earn credit."""

    def __init__(
        self,
        message: str,
        question_number: Optional[int] = None,
        path: str = "",
    ):
        super().__init__(message)
        self.question_number = question_number
        self.path = path


def canonical_option_id(value: Any) -> str:
    """
    Canonical form of an option id: trimmed and upper-cased.

    Applied to answer keys and detections alike so "a", " A" and "A"
    all refer to the same option.
    """
    return str(value).strip().upper()


@dataclass(frozen=True)
class AnswerKey:
    """
    Canonical answer key for one question (immutable).

    Attributes:
        question_number: Positive question number, unique within a paper
        format: Declared question format
        points: Maximum score for the question (pointsPerBlank), > 0
        options: Ordered (option_id, display_text) pairs; may be empty
        correct_option_ids: Ordered correct ids; the first one is the
            primary answer for single_choice
        option_weights: Ordered (option_id, weight) pairs, one per correct
            option; filled with uniform weight 1 when left empty
        expected_blank_answers: One tuple of acceptable strings per blank
        blank_match_modes: One match mode per blank; EXACT when left empty

    Invariants:
        - points > 0
        - choice formats have at least one correct option id
        - correct option weights are non-negative and sum to more than 0
        - fill_in_blank has at least one blank, each with an acceptable answer

    Example:
        >>> key = AnswerKey(2, QuestionFormat.MULTI_CHOICE, 2.0,
        ...                 correct_option_ids=("A", "C"))
        >>> key.weight_map
        {'A': 1.0, 'C': 1.0}
    """

    question_number: int
    format: QuestionFormat
    points: float
    options: Tuple[Tuple[str, str], ...] = ()
    correct_option_ids: Tuple[str, ...] = ()
    option_weights: Tuple[Tuple[str, float], ...] = ()
    expected_blank_answers: Tuple[Tuple[str, ...], ...] = ()
    blank_match_modes: Tuple[BlankMatchMode, ...] = ()

    def __post_init__(self) -> None:
        """Validate the key and fill defaulted weights and match modes."""
        qn = self.question_number
        if isinstance(qn, bool) or not isinstance(qn, int) or qn <= 0:
            raise InvalidAnswerKey(
                f"question_number must be a positive integer: {qn!r}",
                path="questionNumber",
            )
        if not isinstance(self.format, QuestionFormat):
            raise InvalidAnswerKey(
                f"Q{qn}: unknown question format {self.format!r}",
                question_number=qn,
                path="format",
            )
        if (
            isinstance(self.points, bool)
            or not isinstance(self.points, (int, float))
            or not math.isfinite(self.points)
            or self.points <= 0
        ):
            raise InvalidAnswerKey(
                f"Q{qn}: points must be positive, got {self.points!r}",
                question_number=qn,
                path="pointsPerBlank",
            )

        if self.format.is_choice:
            self._validate_choice()
        else:
            self._validate_blanks()

    def _validate_choice(self) -> None:
        qn = self.question_number
        if not self.correct_option_ids:
            raise InvalidAnswerKey(
                f"Q{qn}: choice question has no correct option",
                question_number=qn,
                path="correctOptionIds",
            )
        if len(set(self.correct_option_ids)) != len(self.correct_option_ids):
            raise InvalidAnswerKey(
                f"Q{qn}: duplicate correct option ids {self.correct_option_ids}",
                question_number=qn,
                path="correctOptionIds",
            )
        if self.options:
            known = {option_id for option_id, _ in self.options}
            missing = [o for o in self.correct_option_ids if o not in known]
            if missing:
                raise InvalidAnswerKey(
                    f"Q{qn}: correct options {missing} are not among the options",
                    question_number=qn,
                    path="correctOptionIds",
                )

        if not self.option_weights:
            object.__setattr__(
                self,
                "option_weights",
                tuple((option_id, 1.0) for option_id in self.correct_option_ids),
            )
        weighted = [option_id for option_id, _ in self.option_weights]
        if weighted != list(self.correct_option_ids):
            raise InvalidAnswerKey(
                f"Q{qn}: option_weights must list exactly the correct options in order",
                question_number=qn,
                path="optionWeights",
            )
        for option_id, weight in self.option_weights:
            if not math.isfinite(weight) or weight < 0:
                raise InvalidAnswerKey(
                    f"Q{qn}: weight for option {option_id} must be non-negative: {weight!r}",
                    question_number=qn,
                    path=f"optionWeights.{option_id}",
                )
        if self.total_weight <= 0:
            raise InvalidAnswerKey(
                f"Q{qn}: correct option weights sum to zero",
                question_number=qn,
                path="optionWeights",
            )

    def _validate_blanks(self) -> None:
        qn = self.question_number
        if not self.expected_blank_answers:
            raise InvalidAnswerKey(
                f"Q{qn}: fill-in-blank question has no expected answers",
                question_number=qn,
                path="expectedBlankAnswers",
            )
        for index, alternatives in enumerate(self.expected_blank_answers):
            if not any(a.strip() for a in alternatives):
                raise InvalidAnswerKey(
                    f"Q{qn}: blank {index + 1} has no acceptable answer",
                    question_number=qn,
                    path=f"expectedBlankAnswers[{index}]",
                )

        if not self.blank_match_modes:
            object.__setattr__(
                self,
                "blank_match_modes",
                (BlankMatchMode.EXACT,) * len(self.expected_blank_answers),
            )
        if len(self.blank_match_modes) != len(self.expected_blank_answers):
            raise InvalidAnswerKey(
                f"Q{qn}: {len(self.blank_match_modes)} match modes for "
                f"{len(self.expected_blank_answers)} blanks",
                question_number=qn,
                path="blankMatchModes",
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Calculated Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def primary_option_id(self) -> Optional[str]:
        """The authoritative answer for single_choice (first correct id)."""
        return self.correct_option_ids[0] if self.correct_option_ids else None

    @cached_property
    def correct_set(self) -> FrozenSet[str]:
        return frozenset(self.correct_option_ids)

    @cached_property
    def weight_map(self) -> Dict[str, float]:
        return dict(self.option_weights)

    @cached_property
    def total_weight(self) -> float:
        """
        Sum of correct option weights, added in key order.

        Scorers sum selected weights in the same order, so a complete
        selection reproduces this value exactly.
        """
        total = 0.0
        for _, weight in self.option_weights:
            total += weight
        return total

    @property
    def blank_count(self) -> int:
        return len(self.expected_blank_answers)

    @property
    def has_uniform_weights(self) -> bool:
        return all(weight == 1.0 for _, weight in self.option_weights)

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        """
        Serialize to a JSON-compatible dictionary.

        Orderings (options, correct ids, weights, blanks) are kept as lists
        so a round trip preserves the single-choice tie-break.
        """
        data: Dict[str, Any] = {
            "questionNumber": self.question_number,
            "format": self.format.value,
            "pointsPerBlank": self.points,
        }
        if self.format.is_choice:
            data["options"] = [
                {"id": option_id, "text": text} for option_id, text in self.options
            ]
            data["correctOptionIds"] = list(self.correct_option_ids)
            data["optionWeights"] = [
                {"id": option_id, "weight": weight}
                for option_id, weight in self.option_weights
            ]
        else:
            data["expectedBlankAnswers"] = [list(a) for a in self.expected_blank_answers]
            data["blankMatchModes"] = [mode.value for mode in self.blank_match_modes]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> AnswerKey:
        """
        Deserialize from the canonical dictionary produced by to_dict().

        Legacy shapes go through engine.normalizer instead.
        """
        return cls(
            question_number=data["questionNumber"],
            format=QuestionFormat(data["format"]),
            points=float(data["pointsPerBlank"]),
            options=tuple(
                (str(o["id"]), str(o["text"])) for o in data.get("options", [])
            ),
            correct_option_ids=tuple(data.get("correctOptionIds", [])),
            option_weights=tuple(
                (str(w["id"]), float(w["weight"])) for w in data.get("optionWeights", [])
            ),
            expected_blank_answers=tuple(
                tuple(a) for a in data.get("expectedBlankAnswers", [])
            ),
            blank_match_modes=tuple(
                BlankMatchMode(m) for m in data.get("blankMatchModes", [])
            ),
        )

    def __repr__(self) -> str:
        if self.format.is_choice:
            return (
                f"AnswerKey(Q{self.question_number}, {self.format.value}, "
                f"correct={list(self.correct_option_ids)}, points={self.points})"
            )
        return (
            f"AnswerKey(Q{self.question_number}, {self.format.value}, "
            f"blanks={self.blank_count}, points={self.points})"
        )
