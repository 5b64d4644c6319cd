"""
Answer Engine Core Package

Shared data models, payload schemas and serialization helpers.

1. **One canonical shape per concept**
   - Question records arrive in several legacy shapes (single string,
     list, comma-joined string, JSON-encoded list)
   - Only the normalizer reads them; every later stage sees AnswerKey

2. **Immutable models**
   - Frozen dataclasses, validated on construction
   - A half-built SubmissionResult cannot exist

3. **Calculated totals**
   - Totals, percentage and grade are computed by the grader, never
     carried in from input
"""

from .models import (
    AnswerKey,
    Confidence,
    DetectedResponse,
    Diagnostics,
    Evaluation,
    FormatMismatch,
    InvalidAnswerKey,
    InvalidResponse,
    QuestionFormat,
    QuestionResult,
    SubmissionIdentity,
    SubmissionResult,
)

__all__ = [
    "AnswerKey",
    "Confidence",
    "DetectedResponse",
    "Diagnostics",
    "Evaluation",
    "FormatMismatch",
    "InvalidAnswerKey",
    "InvalidResponse",
    "QuestionFormat",
    "QuestionResult",
    "SubmissionIdentity",
    "SubmissionResult",
]
