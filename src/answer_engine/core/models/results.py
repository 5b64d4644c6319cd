"""
Module: results

Purpose:
    Immutable evaluation outputs: QuestionResult (one per answer key) and
    SubmissionResult (the complete graded submission).

Key Classes:
    - ResponseStatus: answered / unanswered / format_mismatch
    - QuestionResult: Score, correctness flag and explanation for one question
    - SubmissionResult: Ordered question results plus totals and grade

Used By:
    - engine.scoring (builds QuestionResult)
    - engine.grader (builds SubmissionResult)
    - storage (persists SubmissionResult)

Design Notes:
    SubmissionResult is only ever built by engine.grader.aggregate() from a
    full set of question results. There is no incremental builder, so a
    half-populated result cannot exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .answer_key import QuestionFormat
from .response import Confidence


class ResponseStatus(str, Enum):
    """How the detected response for a question was treated."""
    ANSWERED = "answered"
    UNANSWERED = "unanswered"
    FORMAT_MISMATCH = "format_mismatch"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class QuestionResult:
    """
    Outcome of scoring one question (immutable).

    Attributes:
        question_number: Question number from the answer key
        format: Format the question was scored as
        earned_score: Credit awarded, 0 <= earned_score <= max_score
        max_score: The key's points value
        is_fully_correct: Exact match (set equality / every blank matched)
        explanation: Machine-checkable reason, e.g. "2/3 correct, 1 wrong"
        status: Whether the response was answered, missing or mismatched
        selected_option_ids: Sorted selections that were scored
        blank_answers: Blank strings that were scored
        confidence: Detection confidence, None when nothing was detected
    """

    question_number: int
    format: QuestionFormat
    earned_score: float
    max_score: float
    is_fully_correct: bool
    explanation: str
    status: ResponseStatus = ResponseStatus.ANSWERED
    selected_option_ids: Tuple[str, ...] = ()
    blank_answers: Tuple[str, ...] = ()
    confidence: Optional[Confidence] = None

    def __post_init__(self) -> None:
        if self.max_score <= 0:
            raise ValueError(f"Q{self.question_number}: max_score must be positive: {self.max_score}")
        if not (0 <= self.earned_score <= self.max_score):
            raise ValueError(
                f"Q{self.question_number}: earned_score {self.earned_score} "
                f"outside [0, {self.max_score}]"
            )

    @property
    def fraction(self) -> float:
        return self.earned_score / self.max_score

    def to_dict(self) -> dict:
        return {
            "questionNumber": self.question_number,
            "format": self.format.value,
            "earnedScore": self.earned_score,
            "maxScore": self.max_score,
            "isFullyCorrect": self.is_fully_correct,
            "explanation": self.explanation,
            "status": self.status.value,
            "selectedOptionIds": list(self.selected_option_ids),
            "blankAnswers": list(self.blank_answers),
            "confidence": self.confidence.value if self.confidence else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> QuestionResult:
        confidence = data.get("confidence")
        return cls(
            question_number=data["questionNumber"],
            format=QuestionFormat(data["format"]),
            earned_score=float(data["earnedScore"]),
            max_score=float(data["maxScore"]),
            is_fully_correct=bool(data["isFullyCorrect"]),
            explanation=data["explanation"],
            status=ResponseStatus(data.get("status", "answered")),
            selected_option_ids=tuple(data.get("selectedOptionIds", [])),
            blank_answers=tuple(data.get("blankAnswers", [])),
            confidence=Confidence(confidence) if confidence else None,
        )


@dataclass(frozen=True)
class SubmissionResult:
    """
    Complete graded submission (immutable).

    Attributes:
        question_results: One result per answer key, ordered by question number
        total_score: Sum of earned scores
        max_score: Sum of key points
        percentage: 100 * total_score / max_score (0 when max_score is 0)
        grade: Letter grade looked up from the grade table

    Example:
        >>> result.total_score, result.max_score, result.grade
        (2.5, 6.0, 'D')
    """

    question_results: Tuple[QuestionResult, ...]
    total_score: float
    max_score: float
    percentage: float
    grade: str

    @property
    def question_count(self) -> int:
        return len(self.question_results)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.question_results if r.is_fully_correct)

    @property
    def answered_count(self) -> int:
        return sum(1 for r in self.question_results if r.status is ResponseStatus.ANSWERED)

    def get(self, question_number: int) -> Optional[QuestionResult]:
        """Find the result for a question number."""
        for result in self.question_results:
            if result.question_number == question_number:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            "questionResults": [r.to_dict() for r in self.question_results],
            "totalScore": self.total_score,
            "maxScore": self.max_score,
            "percentage": self.percentage,
            "grade": self.grade,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SubmissionResult:
        return cls(
            question_results=tuple(
                QuestionResult.from_dict(r) for r in data.get("questionResults", [])
            ),
            total_score=float(data["totalScore"]),
            max_score=float(data["maxScore"]),
            percentage=float(data["percentage"]),
            grade=data["grade"],
        )

    def __repr__(self) -> str:
        return (
            f"SubmissionResult({self.total_score}/{self.max_score}, "
            f"{self.percentage:.1f}%, {self.grade!r}, questions={self.question_count})"
        )
