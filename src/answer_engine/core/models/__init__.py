"""
Core Models Package

Immutable, validated data models shared by every pipeline stage.

All models in this package are frozen dataclasses. This ensures:
1. No accidental mutation between Normalizer, Matcher, Scorer and Aggregator
2. Safe to evaluate many submissions in parallel threads
3. Identical inputs compare (and serialize) identically

| Model | Produced by | Consumed by |
|-------|-------------|-------------|
| `AnswerKey` | engine.normalizer | matcher, scoring |
| `DetectedResponse` | engine.normalizer.parse_response | matcher, scoring |
| `QuestionResult` | engine.scoring | engine.grader |
| `SubmissionResult` | engine.grader | controller, storage |
| `Diagnostics` | engine.controller | callers |
"""

from .answer_key import (
    AnswerKey,
    BlankMatchMode,
    InvalidAnswerKey,
    QuestionFormat,
    canonical_option_id,
)
from .response import Confidence, DetectedResponse, InvalidResponse
from .results import QuestionResult, ResponseStatus, SubmissionResult
from .diagnostics import Diagnostics, FormatMismatch
from .evaluation import Evaluation, SubmissionIdentity

__all__ = [
    "AnswerKey",
    "BlankMatchMode",
    "InvalidAnswerKey",
    "QuestionFormat",
    "canonical_option_id",
    "Confidence",
    "DetectedResponse",
    "InvalidResponse",
    "QuestionResult",
    "ResponseStatus",
    "SubmissionResult",
    "Diagnostics",
    "FormatMismatch",
    "Evaluation",
    "SubmissionIdentity",
]
